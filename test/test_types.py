from pytest import raises
from sample_models import Ambiguous, Folder, Page, Person, Typed, Widget

from model_persist import (
    DEFAULT_TYPE,
    InvalidArgumentError,
    TypeKey,
    TypeRegistry,
)


def test_default():
    types = TypeRegistry()

    assert types.resolve(None) == TypeKey(DEFAULT_TYPE)
    assert types.resolve(Person("A")) == TypeKey(DEFAULT_TYPE)

    # None isn't cached
    assert len(types) == 1
    assert Person in types


def test_custom_default():
    types = TypeRegistry("app:Node")

    assert types.default_type == "app:Node"
    assert types.resolve(Person("A")) == TypeKey("app:Node")


def test_resource_type():
    types = TypeRegistry()

    assert types.resolve(Folder("f")) == TypeKey("sling:Folder")
    assert types.resolve(Page("/p", "Title")) == TypeKey(
        "cq:Page", "cq:PageContent"
    )


def test_model_types():
    types = TypeRegistry()

    # exactly one declared type is used
    assert types.resolve(Widget()) == TypeKey("app:Widget")

    # ambiguous declaration falls back to default
    assert types.resolve(Ambiguous()) == TypeKey(DEFAULT_TYPE)


def test_type_field():
    types = TypeRegistry()

    assert types.resolve(Typed()) == TypeKey("app:Dynamic")

    # cached per class, so the first instance's type applies
    assert types.resolve(Typed(kind="app:Other")) == TypeKey("app:Dynamic")

    types.clear()
    assert len(types) == 0
    assert types.resolve(Typed(kind="app:Other")) == TypeKey("app:Other")


def test_register():
    types = TypeRegistry()
    types.register(Person, TypeKey("app:Person", "app:PersonContent"))

    assert types.resolve(Person("A")) == TypeKey(
        "app:Person", "app:PersonContent"
    )

    # same key may be registered again
    types.register(Person, TypeKey("app:Person", "app:PersonContent"))

    # changing a registered key is rejected
    with raises(InvalidArgumentError):
        types.register(Person, TypeKey("app:Other"))

    assert types.resolve(Person("A")) == TypeKey(
        "app:Person", "app:PersonContent"
    )
