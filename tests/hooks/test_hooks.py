import pytest

from cascadeorm.adapters import ConnectionConfig, SQLiteAdapter
from cascadeorm.core import IntegerField, Model, StringField
from cascadeorm.dialects import SQLiteDialect
from cascadeorm.hooks import HookDispatcher
from cascadeorm.persistence import Session
from cascadeorm.schema import SchemaBuilder


class Sample(Model):
    name = StringField(nullable=False)
    age = IntegerField(default=0)


class SpecialSample(Sample):
    pass


def make_session(tmp_path):
    session = Session(SQLiteAdapter(), connection_config=ConnectionConfig(url=f"sqlite:///{tmp_path / 'hooks.db'}"))
    SchemaBuilder(SQLiteDialect()).create_all(session.adapter, [Sample, SpecialSample])
    return session


def test_unknown_event_rejected():
    with pytest.raises(ValueError):
        HookDispatcher().register("before_validate", lambda instance, **ctx: None)


def test_model_handlers_match_subclasses():
    dispatcher = HookDispatcher()
    seen = []
    dispatcher.register("after_save", lambda instance, **ctx: seen.append(type(instance).__name__), model=Sample)
    dispatcher.fire("after_save", SpecialSample(name="x"))
    dispatcher.fire("after_save", None)
    assert seen == ["SpecialSample"]


def test_unregister_and_clear():
    dispatcher = HookDispatcher()
    seen = []

    def handler(instance, **ctx):
        seen.append(instance)

    dispatcher.register("before_delete", handler)
    dispatcher.unregister("before_delete", handler)
    dispatcher.fire("before_delete", "x")
    dispatcher.register("before_delete", handler, model=Sample)
    dispatcher.clear()
    dispatcher.fire("before_delete", Sample(name="y"))
    assert seen == []


def test_hooks_fire_in_order(tmp_path):
    events = []
    session = make_session(tmp_path)
    for event_name in ["before_save", "after_save", "after_commit"]:

        def handler(instance, event=event_name, **ctx):
            events.append((event, instance.name if instance else None, ctx.get("created")))

        session.hooks.register(event_name, handler)

    session.begin()
    sample = Sample(name="Alice", age=21)
    session.save(sample)
    session.commit()

    assert events == [
        ("before_save", "Alice", True),
        ("after_save", "Alice", True),
        ("after_commit", None, None),
    ]

    events.clear()
    sample.age = 22
    session.commit()
    assert events[:2] == [("before_save", "Alice", False), ("after_save", "Alice", False)]
    session.close()


def test_model_specific_hook_on_delete(tmp_path):
    fired = []
    session = make_session(tmp_path)
    session.hooks.register("before_delete", lambda instance, **ctx: fired.append(("before", instance.name)), model=Sample)
    session.hooks.register("after_delete", lambda instance, **ctx: fired.append(("after", instance.name)), model=Sample)

    sample = Sample(name="Bob", age=30)
    session.save(sample)
    session.commit()

    session.delete(sample)
    session.commit()

    assert fired == [("before", "Bob"), ("after", "Bob")]
    session.close()


def test_sessions_do_not_share_handlers(tmp_path):
    first = make_session(tmp_path)
    second = Session(SQLiteAdapter())
    first.hooks.register("after_commit", lambda instance, **ctx: None)
    assert first.hooks is not second.hooks
    assert second.hooks._global_handlers.get("after_commit", []) == []
    first.close()
    second.close()
