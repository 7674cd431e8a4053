from abc import ABCMeta

import model_persist


def test_import():
    # make sure symbols are accessible by fully qualified path
    assert isinstance(model_persist.core.ModelPersister, type)
    assert isinstance(model_persist.core.persister.ModelPersister, type)
    assert isinstance(model_persist.core.types.TypeRegistry, type)
    assert isinstance(model_persist.core.introspect.AttributeIntrospector, type)
    assert callable(model_persist.core.identity.resolve_path)
    assert isinstance(model_persist.store.base.BaseStore, ABCMeta)
    assert isinstance(model_persist.store.memory.MemoryStore, ABCMeta)
    assert isinstance(model_persist.store.fs.FsStore, ABCMeta)

    # ensure no internal symbols accidentally exported
    assert all([not sym.startswith("_") for sym in model_persist.__all__])
