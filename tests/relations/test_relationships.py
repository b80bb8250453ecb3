import pytest

from cascadeorm.core import ForeignKey, ManyToManyField, Model, OneToMany, OneToOneField, StringField
from cascadeorm.core.relations import (
    CASCADE_ALL,
    CASCADE_SAVE,
    AssociationKind,
    RelationshipError,
)


class Writer(Model):
    name = StringField(nullable=False)
    essays = OneToMany("Essay", mapped_by="writer", cascade="all")


class Essay(Model):
    title = StringField(nullable=False)
    writer = ForeignKey(Writer, cascade=CASCADE_SAVE)


class Label(Model):
    name = StringField()


class Journal(Model):
    title = StringField()
    owner = ForeignKey("Writer", nullable=True)
    labels = ManyToManyField(Label)
    highlights = OneToMany(Essay)


class Passport(Model):
    number = StringField()
    holder = OneToOneField(Writer)


class Citizen(Model):
    name = StringField()
    passport = OneToOneField("Visa", mapped_by="citizen")


class Visa(Model):
    citizen = OneToOneField(Citizen, nullable=True)


def test_foreign_key_metadata():
    field = Essay._meta.get_field("writer")
    assert field.remote_model is Writer
    assert field.kind is AssociationKind.OWNING_TO_ONE
    assert field.owning_side
    assert field.column_name() == "writer_id"
    assert field.cascade == frozenset({CASCADE_SAVE})


def test_foreign_key_id_accessor_reads_target_or_raw_value():
    writer = Writer(id=5, name="Ana")
    essay = Essay(title="On Tides", writer=writer)
    assert essay.writer_id == 5
    loaded = Essay(title="Draft", writer_id=9)
    assert loaded.writer == 9
    assert loaded.writer_id == 9


def test_string_reference_resolved():
    assert Journal._meta.get_field("owner").remote_model is Writer
    assert Writer._meta.relations["essays"].remote_model is Essay


def test_forward_reference_resolved_when_target_is_defined():
    assert Citizen._meta.relations["passport"].remote_model is Visa


def test_collection_kinds():
    relations = Journal._meta.relations
    assert relations["labels"].kind is AssociationKind.MANY_TO_MANY
    assert relations["labels"].uses_join_table
    assert relations["highlights"].kind is AssociationKind.OWNING_TO_MANY
    assert Writer._meta.relations["essays"].kind is AssociationKind.INVERSE_TO_MANY
    assert not Writer._meta.relations["essays"].uses_join_table
    assert "labels" not in Journal._meta.fields


def test_one_to_one_sides():
    assert Passport._meta.get_field("holder").kind is AssociationKind.OWNING_TO_ONE
    assert Passport._meta.get_field("holder").unique
    inverse = Citizen._meta.relations["passport"]
    assert inverse.kind is AssociationKind.INVERSE_TO_ONE
    assert "passport" not in Citizen._meta.fields


def test_collections_default_to_empty_lists():
    writer = Writer(name="Ana")
    assert writer.essays == []
    writer.essays.append(Essay(title="x", writer=writer))
    assert len(writer.essays) == 1
    assert Writer._meta.relations["essays"].cascade == frozenset({CASCADE_ALL})


def test_unknown_cascade_option_rejected():
    with pytest.raises(RelationshipError):
        ForeignKey(Writer, cascade="merge")


def test_self_reference():
    class Employee(Model):
        name = StringField()
        manager = ForeignKey("self", nullable=True)

    assert Employee._meta.get_field("manager").remote_model is Employee


def test_unknown_target_raises_on_use():
    class Orphan(Model):
        parent = ForeignKey("NoSuchModel", nullable=True)

    with pytest.raises(RelationshipError):
        Orphan._meta.get_field("parent").require_remote_model()
