import datetime
from decimal import Decimal
from pathlib import Path

import yaml
from pytest import raises
from sample_models import Folder, Item, Page

from model_persist import (
    META_FILENAME,
    FsStore,
    ModelPersister,
    NodeMeta,
    StoreError,
)


def test_persist(fs_store: FsStore, persister: ModelPersister):
    root_dir = fs_store.root_dir

    persister.persist(Page("/content/home", "Home"), fs_store)

    content_dir = root_dir / "content" / "home" / "jcr:content"
    meta = NodeMeta.load_yaml(content_dir / META_FILENAME)

    assert meta.node_type == "cq:PageContent"
    assert meta.properties == {"jcr:title": "Home"}

    # written using alias
    raw = yaml.safe_load((content_dir / META_FILENAME).read_text())
    assert raw["type"] == "cq:PageContent"

    # reload
    store = FsStore(root_dir)
    node = store.get_node("/content/home")
    assert node is not None
    assert node.node_type == "cq:Page"

    content = node.get_child("jcr:content")
    assert content is not None
    assert content.properties["jcr:title"] == "Home"
    assert not store.has_changes


def test_values(fs_store: FsStore):
    node = fs_store.resolve_or_create("/n", "app:Node")

    when = datetime.datetime(2024, 5, 17, 12, 30, 15)
    values = {
        "text": "x",
        "int": 1,
        "float": 1.5,
        "bool": True,
        "bytes": b"\x00\xff",
        "decimal": Decimal("10.25"),
        "datetime": when,
        "date": when.date(),
        "list": ["a", "b"],
    }

    for name, value in values.items():
        node.properties[name] = value

    fs_store.commit()

    store = FsStore(fs_store.root_dir)
    loaded = store.get_node("/n")
    assert loaded is not None
    assert dict(loaded.properties) == values


def test_delete(fs_store: FsStore, persister: ModelPersister):
    root_dir = fs_store.root_dir

    folder = Folder(
        "f", items=[Item("/a/one", "One"), Item("/a/two", "Two")]
    )
    persister.persist(folder, fs_store)

    items_dir = root_dir / "folders" / "f" / "items"
    assert (items_dir / "one" / META_FILENAME).is_file()
    assert (items_dir / "two" / META_FILENAME).is_file()

    folder.items = [Item("/a/two", "Two")]
    persister.persist(folder, fs_store)

    assert not (items_dir / "one").exists()
    assert (items_dir / "two").is_dir()

    folder.items = []
    persister.persist(folder, fs_store)

    assert not items_dir.exists()
    assert (root_dir / "folders" / "f" / META_FILENAME).is_file()


def test_revert(fs_store: FsStore):
    fs_store.resolve_or_create("/a", "app:Node")
    fs_store.revert()

    assert not (fs_store.root_dir / "a").exists()


def test_missing_meta(tmp_path: Path, log_records):
    (tmp_path / "a" / "b").mkdir(parents=True)

    store = FsStore(tmp_path, root_type="rep:root")

    assert store.root.node_type == "rep:root"

    node = store.get_node("/a/b")
    assert node is not None
    assert node.node_type == "nt:unstructured"

    assert any(
        "No metadata found for node '/a'" in m for m in log_records.messages()
    )


def test_errors(tmp_path: Path):
    # nonexistent folder
    with raises(StoreError):
        _ = FsStore(tmp_path / "nonexistent")

    # invalid metadata
    bad_dir = tmp_path / "bad"
    (bad_dir / "node").mkdir(parents=True)
    (bad_dir / "node" / META_FILENAME).write_text("- not a mapping\n")

    with raises(StoreError):
        _ = FsStore(bad_dir)

    # reserved node name
    good_dir = tmp_path / "good"
    good_dir.mkdir()
    store = FsStore(good_dir)

    with raises(StoreError):
        store.resolve_or_create(f"/a/{META_FILENAME}", "app:Node")

    # reserved name rejected when persisting; nothing committed
    with raises(StoreError):
        ModelPersister().persist_at(f"/{META_FILENAME}", Item("/x", "X"), store)

    assert list(good_dir.iterdir()) == []
