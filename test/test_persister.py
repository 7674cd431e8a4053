import datetime
import logging
from decimal import Decimal

from pytest import raises
from sample_models import (
    Address,
    Catalog,
    Color,
    Folder,
    Item,
    Labels,
    Marked,
    Measurements,
    NoIdentity,
    Page,
    Person,
    Shelves,
    Sparse,
    Unsupported,
    Untyped,
    WithTransientAccessor,
)

from model_persist import (
    DEFAULT_TYPE,
    AttributeIntrospector,
    InvalidArgumentError,
    MemoryStore,
    ModelPersister,
    Node,
    ScalarCollections,
    State,
    StoreError,
)


class CountingStore(MemoryStore):
    """
    Store which counts commits.
    """

    commit_count: int = 0

    def commit(self):
        self.commit_count += 1
        super().commit()


class StuckStore(MemoryStore):
    """
    Store which refuses to delete nodes named "stuck".
    """

    def delete(self, node: Node):
        if node.name == "stuck":
            raise StoreError(f"Node is locked: {node.path}")
        super().delete(node)


class FailingStore(CountingStore):
    """
    Store which fails to create nodes named "address".
    """

    def resolve_or_create(
        self,
        path: str,
        node_type: str,
        default_type: str = DEFAULT_TYPE,
        create_ancestors: bool = True,
    ) -> Node:
        if path.endswith("/address"):
            raise StoreError(f"Unable to create node: {path}")
        return super().resolve_or_create(
            path, node_type, default_type, create_ancestors
        )


def get_node(store: MemoryStore, path: str) -> Node:
    node = store.get_node(path)
    assert node is not None, f"Node does not exist: {path}"
    return node


def child_names(store: MemoryStore, path: str) -> list[str]:
    return [c.name for c in get_node(store, path).children]


def test_persist_scalars(store: MemoryStore, persister: ModelPersister):
    person = Person(
        "Alice", age=30, tags=["a", "b"], color=Color.GREEN
    )
    persister.persist_at("/people/alice", person, store)

    # ancestors created with default type
    assert get_node(store, "/people").node_type == DEFAULT_TYPE

    node = get_node(store, "/people/alice")
    assert node.node_type == DEFAULT_TYPE
    assert dict(node.properties) == {
        "name": "Alice",
        "age": 30,
        "tags": ["a", "b"],
        "color": "green",
    }

    # None nested object is not written
    assert node.get_child("address") is None

    # committed upon return
    assert not store.has_changes


def test_idempotent(store: MemoryStore):
    persister = ModelPersister(auto_commit=False)

    folder = Folder(
        "f1",
        items=[Item("/x/one", "One"), Item("/x/two", "Two")],
        children=[Item("/x/three", "Three")],
        meta=Address("Main St", "Springfield"),
    )

    persister.persist(folder, store)
    assert store.has_changes
    store.commit()

    persister.persist(folder, store)
    assert not store.has_changes
    assert store.pending_changes() == {
        State.CREATE: [],
        State.UPDATE: [],
        State.DELETE: [],
    }


def test_round_trip(store: MemoryStore, persister: ModelPersister):
    when = datetime.datetime(2024, 5, 17, 12, 30, 15)
    measurements = Measurements(
        price=Decimal("19.99"),
        when=when,
        day=datetime.date(2024, 5, 17),
        blob=b"\x00\x01",
        flag=False,
    )

    persister.persist_at("/m", measurements, store)

    properties = get_node(store, "/m").properties
    assert properties["price"] == Decimal("19.99")
    assert properties["when"] == when
    assert properties["day"] == datetime.date(2024, 5, 17)
    assert properties["blob"] == b"\x00\x01"
    assert properties["flag"] is False

    assert properties.get_as("price", str) == "19.99"
    assert properties.get_as("missing", int, 5) == 5


def test_scalar_nulling(store: MemoryStore, persister: ModelPersister):
    person = Person("Bob", age=41)
    persister.persist_at("/bob", person, store)
    assert get_node(store, "/bob").properties["age"] == 41

    person.age = None
    persister.persist_at("/bob", person, store)
    assert "age" not in get_node(store, "/bob").properties


def test_type_change(store: MemoryStore, persister: ModelPersister):
    sparse = Sparse("x")
    sparse.note = "text"  # type: ignore
    persister.persist_at("/s", sparse, store)
    assert get_node(store, "/s").properties["note"] == "text"

    sparse.note = 12  # type: ignore
    persister.persist_at("/s", sparse, store)
    assert get_node(store, "/s").properties["note"] == 12


def test_runtime_kind_change(store: MemoryStore, persister: ModelPersister):
    untyped = Untyped(["a", "b"], ["x"])
    persister.persist_at("/u", untyped, store)

    properties = get_node(store, "/u").properties
    assert properties["tags"] == ["a", "b"]
    assert properties["extra"] == ["x"]

    # emptied lists no longer classify as scalars; properties removed
    untyped.tags = []
    untyped.extra = []
    persister.persist_at("/u", untyped, store)

    properties = get_node(store, "/u").properties
    assert "tags" not in properties
    assert "extra" not in properties
    assert child_names(store, "/u") == []

    # removed when shallow as well
    untyped.tags = ["c"]
    persister.persist_at("/u", untyped, store)
    assert get_node(store, "/u").properties["tags"] == ["c"]

    untyped.tags = []
    persister.persist_at("/u", untyped, store, deep=False)
    assert "tags" not in get_node(store, "/u").properties

    # list of objects replaces property with container
    untyped.extra = ["y"]
    persister.persist_at("/u", untyped, store)
    untyped.extra = [Item("/i/one", "One")]
    persister.persist_at("/u", untyped, store)

    assert "extra" not in get_node(store, "/u").properties
    assert child_names(store, "/u/extra") == ["one"]

    # list of scalars replaces container with property
    untyped.extra = ["z"]
    persister.persist_at("/u", untyped, store)

    assert get_node(store, "/u").properties["extra"] == ["z"]
    assert "/u/extra" not in store


def test_nested_object(store: MemoryStore, persister: ModelPersister):
    person = Person("Carol", address=Address("Elm St", "Shelbyville"))
    persister.persist_at("/carol", person, store)

    address = get_node(store, "/carol/address")
    assert address.properties["street"] == "Elm St"
    assert address.properties["city"] == "Shelbyville"

    # object later set to None leaves its node untouched
    person.address = None
    persister.persist_at("/carol", person, store)
    assert "/carol/address" in store


def test_collection(store: MemoryStore, persister: ModelPersister):
    folder = Folder(
        "f",
        items=[
            Item("/a/one", "One"),
            Item("/a/two", "Two"),
            Item("/a/three", "Three"),
        ],
    )
    persister.persist(folder, store)

    node = get_node(store, "/folders/f")
    assert node.node_type == "sling:Folder"

    # container created with default type
    container = get_node(store, "/folders/f/items")
    assert container.node_type == DEFAULT_TYPE

    # elements named by identity, in order
    assert child_names(store, "/folders/f/items") == ["one", "two", "three"]
    assert get_node(store, "/folders/f/items/two").properties["label"] == "Two"

    # shrink collection
    folder.items = [Item("/a/three", "Three!")]
    persister.persist(folder, store)

    assert child_names(store, "/folders/f/items") == ["three"]
    assert (
        get_node(store, "/folders/f/items/three").properties["label"]
        == "Three!"
    )

    # None leaves collection untouched
    folder.items = None
    persister.persist(folder, store)
    assert child_names(store, "/folders/f/items") == ["three"]

    # emptied collection removes container
    folder.items = []
    persister.persist(folder, store)
    assert "/folders/f/items" not in store
    assert "/folders/f" in store


def test_collection_skip_none(store: MemoryStore, persister: ModelPersister):
    folder = Folder("f", items=[Item("/a/one", "One"), None])  # type: ignore
    persister.persist(folder, store)

    assert child_names(store, "/folders/f/items") == ["one"]


def test_anonymous_elements(store: MemoryStore, persister: ModelPersister):
    # elements without identity get generated names
    persister.persist_at(
        "/people", [Person("A"), Person("B")], store
    )
    names = child_names(store, "/people")
    assert len(names) == 2

    # generated names aren't stable, so elements are replaced
    persister.persist_at("/people", [Person("A"), Person("B")], store)
    names2 = child_names(store, "/people")
    assert len(names2) == 2
    assert not set(names) & set(names2)


def test_direct_descendants(store: MemoryStore, persister: ModelPersister):
    folder = Folder(
        "d",
        items=[Item("/a/one", "One")],
        children=[Item("/c/first", "First"), Item("/c/second", "Second")],
        meta=Address("Main St", "Springfield"),
    )
    persister.persist(folder, store)

    assert set(child_names(store, "/folders/d")) == {
        "items",
        "first",
        "second",
        "meta",
    }

    # pruning children keeps owned containers
    folder.children = [Item("/c/second", "Second")]
    persister.persist(folder, store)

    assert set(child_names(store, "/folders/d")) == {
        "items",
        "second",
        "meta",
    }

    # emptying children prunes all former children
    folder.children = []
    persister.persist(folder, store)

    assert set(child_names(store, "/folders/d")) == {"items", "meta"}
    assert get_node(store, "/folders/d/meta").properties["city"] == "Springfield"


def test_multiple_direct_descendants(
    store: MemoryStore, persister: ModelPersister
):
    shelves = Shelves(
        "/shelves",
        books=[Item("/b/dune", "Dune"), Item("/b/emma", "Emma")],
        magazines=[Item("/m/wired", "Wired")],
        owner=Address("Main St", "Springfield"),
    )
    persister.persist(shelves, store)

    # elements of both collections kept
    assert set(child_names(store, "/shelves")) == {
        "dune",
        "emma",
        "wired",
        "owner",
    }

    # each collection pruned without affecting the other
    shelves.books = [Item("/b/emma", "Emma")]
    persister.persist(shelves, store)

    assert set(child_names(store, "/shelves")) == {"emma", "wired", "owner"}

    shelves.magazines = []
    persister.persist(shelves, store)

    assert set(child_names(store, "/shelves")) == {"emma", "owner"}

    # None leaves former elements untouched
    shelves.magazines = None
    shelves.books = []
    persister.persist(shelves, store)

    assert set(child_names(store, "/shelves")) == {"emma", "owner"}

    shelves.magazines = []
    persister.persist(shelves, store)

    assert child_names(store, "/shelves") == ["owner"]


def test_map(store: MemoryStore, persister: ModelPersister):
    catalog = Catalog(
        path="/catalog",
        label="Catalog",
        entries={
            "home": Address("Main St", "Springfield"),
            "work": Address("Elm St", "Shelbyville"),
        },
        by_color={Color.RED: 1, Color.GREEN: 2},
        ratios=[0.5, 1.5],
    )
    catalog.entries["none"] = None  # type: ignore

    persister.persist(catalog, store)

    node = get_node(store, "/catalog")
    assert dict(node.properties) == {
        "path": "/catalog",
        "jcr:title": "Catalog",
        "ratios": [0.5, 1.5],
    }

    # None values skipped
    assert child_names(store, "/catalog/entries") == ["home", "work"]
    assert get_node(store, "/catalog/entries/work").properties["city"] == (
        "Shelbyville"
    )

    # enum keys named by member name, scalar values written as own node
    assert child_names(store, "/catalog/by_color") == ["RED", "GREEN"]
    assert get_node(store, "/catalog/by_color/GREEN").properties["value"] == 2

    # removed keys pruned
    catalog.entries = {"work": Address("Elm St", "Capital City")}
    persister.persist(catalog, store)

    assert child_names(store, "/catalog/entries") == ["work"]
    assert get_node(store, "/catalog/entries/work").properties["city"] == (
        "Capital City"
    )

    # emptied map removes container
    catalog.by_color = {}
    persister.persist(catalog, store)
    assert "/catalog/by_color" not in store


def test_map_invalid_key(store: MemoryStore, persister: ModelPersister):
    with raises(InvalidArgumentError):
        persister.persist_at("/m", {"a/b": Address("x", "y")}, store)

    # nothing committed
    assert store.has_changes

    store.revert()
    assert "/m" not in store


def test_root_collection(store: MemoryStore, persister: ModelPersister):
    persister.persist_at(
        "/list", [Item("/i/one", "One"), Item("/i/two", "Two")], store
    )
    assert child_names(store, "/list") == ["one", "two"]

    persister.persist_at("/map", {1: Address("a", "b")}, store)
    assert child_names(store, "/map") == ["1"]

    persister.persist_at("/list", [Item("/i/two", "Two")], store)
    assert child_names(store, "/list") == ["two"]


def test_root_scalar(store: MemoryStore, persister: ModelPersister):
    persister.persist_at("/answer", 42, store)
    assert get_node(store, "/answer").properties["value"] == 42


def test_scalar_collections(store: MemoryStore, persister: ModelPersister):
    labels = Labels(
        scalars=["x", "y"],
        flat=["p", "q"],
        nested=[["a", "b"], ["c"]],
    )
    persister.persist_at("/labels", labels, store)

    node = get_node(store, "/labels")

    # flattened to multi-value property
    assert node.properties["flat"] == ["p", "q"]

    # one child per element, each holding a value property
    scalars = get_node(store, "/labels/scalars").children
    assert sorted(c.properties["value"] for c in scalars) == ["x", "y"]

    # nested collections are never flattened into a property
    nested = get_node(store, "/labels/nested").children
    assert sorted(
        sorted(g.properties["value"] for g in c.children) for c in nested
    ) == [["a", "b"], ["c"]]


def test_scalar_collections_as_children(store: MemoryStore):
    persister = ModelPersister(
        introspector=AttributeIntrospector(ScalarCollections.CHILDREN)
    )

    persister.persist_at(
        "/labels", Labels(scalars=["x"], flat=["p", "q"]), store
    )
    persister.persist_at("/person", Person("D", tags=["a", "b"]), store)

    # explicit marker takes precedence
    assert get_node(store, "/labels").properties["flat"] == ["p", "q"]

    assert "tags" not in get_node(store, "/person").properties
    assert len(get_node(store, "/person/tags").children) == 2


def test_shallow(store: MemoryStore, persister: ModelPersister):
    person = Person("Eve", address=Address("Oak St", "Ogdenville"))

    persister.persist_at("/eve", person, store, deep=False)
    assert get_node(store, "/eve").properties["name"] == "Eve"
    assert "/eve/address" not in store

    persister.persist_at("/eve", person, store)
    assert "/eve/address" in store

    # shallow persist leaves nested nodes untouched
    person.address = Address("Pine St", "Ogdenville")
    person.name = "Eve2"
    persister.persist_at("/eve", person, store, deep=False)

    assert get_node(store, "/eve").properties["name"] == "Eve2"
    assert get_node(store, "/eve/address").properties["street"] == "Oak St"


def test_content_child(store: MemoryStore, persister: ModelPersister):
    page = Page(
        "/content/home", "Home", created="2024-01-01", _template="/t/page"
    )
    persister.persist(page, store)

    node = get_node(store, "/content/home")
    assert node.node_type == "cq:Page"
    assert len(node.properties) == 0

    content = get_node(store, "/content/home/jcr:content")
    assert content.node_type == "cq:PageContent"
    assert dict(content.properties) == {
        "jcr:title": "Home",
        "created": "2024-01-01",
        "cq:template": "/t/page",
    }

    # create-only attribute not written upon update
    page.title = "Home!"
    page.created = "2025-01-01"
    persister.persist(page, store)

    assert dict(content.properties) == {
        "jcr:title": "Home!",
        "created": "2024-01-01",
        "cq:template": "/t/page",
    }


def test_path_precedence(store: MemoryStore, persister: ModelPersister):
    persister.persist(Marked(), store)

    assert get_node(store, "/marked").properties["title"] == "Marked"
    assert "/getter" not in store


def test_custom_content_node(store: MemoryStore):
    persister = ModelPersister(content_node="content")

    persister.persist(Page("/p", "Title"), store)
    assert get_node(store, "/p/content").properties["jcr:title"] == "Title"


def test_existing_type_kept(store: MemoryStore, persister: ModelPersister):
    store.resolve_or_create("/folders/x", "custom:Type")
    store.commit()

    persister.persist(Folder("x"), store)
    assert get_node(store, "/folders/x").node_type == "custom:Type"


def test_skipped_attributes(
    store: MemoryStore, persister: ModelPersister, log_records
):
    persister.persist_at("/u", Unsupported("u", logger=logging.getLogger()), store)
    assert dict(get_node(store, "/u").properties) == {"name": "u"}

    persister.persist_at("/t", WithTransientAccessor("t"), store)
    assert dict(get_node(store, "/t").properties) == {"name": "t"}

    # unreadable attribute skipped with a warning
    persister.persist_at("/sparse", Sparse("s"), store)
    assert dict(get_node(store, "/sparse").properties) == {"name": "s"}

    warnings = log_records.messages(logging.WARNING)
    assert any("Failed to read attribute 'note'" in m for m in warnings)


def test_invalid_arguments(store: MemoryStore, persister: ModelPersister):
    person = Person("F")

    for path in ("", "   "):
        with raises(InvalidArgumentError):
            persister.persist_at(path, person, store)

    with raises(InvalidArgumentError):
        persister.persist_at("/x", None, store)

    with raises(InvalidArgumentError):
        persister.persist_at("/x", person, None)  # type: ignore

    with raises(InvalidArgumentError):
        persister.persist(None, store)

    # no identity
    with raises(InvalidArgumentError):
        persister.persist(NoIdentity(), store)

    # also a ValueError
    with raises(ValueError):
        persister.persist_at("", person, store)

    assert not store.has_changes
    assert list(store.walk()) == [store.root]


def test_commit_per_call(persister: ModelPersister):
    store = CountingStore()

    persister.persist_at("/a", Person("A"), store)
    assert store.commit_count == 1

    # nested objects committed with their owner
    persister.persist_at("/b", Person("B", address=Address("x", "y")), store)
    assert store.commit_count == 2


def test_transaction(persister: ModelPersister):
    store = CountingStore()

    with persister.transaction(store):
        persister.persist_at("/a", Person("A"), store)
        persister.persist_at("/b", Person("B"), store)

        with persister.transaction(store):
            persister.persist_at("/c", Person("C"), store)

        assert store.commit_count == 0
        assert store.has_changes

    assert store.commit_count == 1
    assert not store.has_changes

    for path in ("/a", "/b", "/c"):
        assert path in store


def test_transaction_error(persister: ModelPersister, log_records):
    store = CountingStore()

    with raises(RuntimeError):
        with persister.transaction(store):
            persister.persist_at("/a", Person("A"), store)
            raise RuntimeError("failed")

    # nothing committed, changes left for caller to revert
    assert store.commit_count == 0
    assert store.has_changes

    store.revert()
    assert "/a" not in store

    errors = log_records.messages(logging.ERROR)
    assert any("Aborting transaction" in m for m in errors)

    # next transaction commits normally
    persister.persist_at("/b", Person("B"), store)
    assert store.commit_count == 1


def test_store_error(persister: ModelPersister, log_records):
    store = FailingStore()

    with raises(StoreError):
        persister.persist_at(
            "/a",
            Person("A", address=Address("Main St", "Springfield")),
            store,
        )

    # error propagated before commit, changes left for caller to revert
    assert store.commit_count == 0
    assert store.has_changes
    assert "/a" in store
    assert "/a/address" not in store

    errors = log_records.messages(logging.ERROR)
    assert any("Aborting transaction" in m for m in errors)

    store.revert()
    assert not store.has_changes
    assert "/a" not in store

    # unsupported property value written by the store
    store = CountingStore()
    with raises(StoreError):
        with persister.transaction(store):
            persister.persist_at("/b", Person("B"), store)
            get_node(store, "/b").properties["bad"] = object()

    assert store.commit_count == 0
    assert store.has_changes


def test_no_auto_commit():
    store = CountingStore()
    persister = ModelPersister(auto_commit=False)

    persister.persist_at("/a", Person("A"), store)
    assert store.commit_count == 0
    assert store.pending_changes()[State.CREATE] == ["/a"]


def test_orphan_delete_error(log_records):
    store = StuckStore()
    persister = ModelPersister()

    folder = Folder(
        "f",
        items=[
            Item("/a/one", "One"),
            Item("/a/stuck", "Stuck"),
            Item("/a/two", "Two"),
        ],
    )
    persister.persist(folder, store)

    folder.items = [Item("/a/one", "One")]
    persister.persist(folder, store)

    # failed deletion logged, pass continued
    assert child_names(store, "/folders/f/items") == ["one", "stuck"]

    errors = log_records.messages(logging.ERROR)
    assert any("/folders/f/items/stuck" in m for m in errors)

    # remaining changes still committed
    assert not store.has_changes
