from cascadeorm.persistence import SnapshotStore


class Thing:
    pass


def test_capture_copies_collections_to_tuples():
    store = SnapshotStore()
    thing = Thing()
    tags = ["a"]
    store.capture(thing, {"name": "x", "tags": tags})
    tags.append("b")
    assert store.get(thing) == {"name": "x", "tags": ("a",)}


def test_set_field_and_remove():
    store = SnapshotStore()
    thing = Thing()
    assert not store.has(thing)
    assert store.get(thing) == {}
    store.set_field(thing, "name", "y")
    assert store.has(thing)
    assert store.get(thing)["name"] == "y"
    store.remove(thing)
    assert len(store) == 0


def test_clear():
    store = SnapshotStore()
    store.capture(Thing(), {"a": 1})
    store.capture(Thing(), {"a": 2})
    assert len(store) == 2
    store.clear()
    assert len(store) == 0


def test_snapshot_is_not_inherited_by_a_new_instance():
    store = SnapshotStore()
    store.capture(Thing(), {"a": 1})
    fresh = Thing()
    assert store.get(fresh) == {}
    assert not store.has(fresh)
    assert len(store) == 1
