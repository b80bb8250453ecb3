import pytest

from cascadeorm.core import (
    BooleanField,
    ForeignKey,
    IntegerField,
    ManyToManyField,
    Model,
    OneToMany,
    OneToOneField,
    StringField,
    UUIDField,
)
from cascadeorm.core.model import ModelConfigurationError
from cascadeorm.core.relations import AssociationKind
from cascadeorm.persistence import (
    AssignedGenerator,
    IdentityGenerator,
    MissingIdentityError,
    ModelMetadataProvider,
    UUIDGenerator,
)

metadata = ModelMetadataProvider()


class Author(Model):
    name = StringField(nullable=False)
    books = OneToMany("Book", mapped_by="author", cascade="all")
    favourites = ManyToManyField("Book")
    mentors = ManyToManyField("self")


class Book(Model):
    title = StringField()
    author = ForeignKey(Author, nullable=True)
    published = BooleanField(default=False)


class Shelf(Model):
    code = StringField(primary_key=True)
    books = OneToMany(Book, db_table="shelf_contents")


class Ticket(Model):
    key = UUIDField(primary_key=True)


class Grid(Model):
    x = IntegerField(primary_key=True)
    y = IntegerField(primary_key=True)


class Marker(Model):
    grid = ForeignKey(Grid)


class Badge(Model):
    holder = OneToOneField(Author)


def test_field_names_exclude_associations():
    assert metadata.field_names(Book) == ["id", "title", "published"]


def test_owning_to_one_association():
    association = metadata.association(Book, "author")
    assert association.kind is AssociationKind.OWNING_TO_ONE
    assert association.is_owning_to_one
    assert association.column == "author_id"
    assert association.target is Author
    assert association.nullable
    assert not association.is_collection


def test_inverse_collection():
    association = metadata.association(Author, "books")
    assert association.kind is AssociationKind.INVERSE_TO_MANY
    assert not association.owning_side
    assert association.mapped_by == "author"
    assert association.is_collection
    assert not association.uses_join_table
    assert association.cascades("save") and association.cascades("delete")


def test_many_to_many_join_table_naming():
    association = metadata.association(Author, "favourites")
    assert association.uses_join_table
    assert association.join_table == "author_favourites"
    assert association.join_columns == ("author_id",)
    assert association.inverse_join_columns == ("book_id",)


def test_self_referencing_join_table_uses_relation_name():
    association = metadata.association(Author, "mentors")
    assert association.join_columns == ("author_id",)
    assert association.inverse_join_columns == ("mentors_id",)


def test_unidirectional_one_to_many_with_custom_table():
    association = metadata.association(Shelf, "books")
    assert association.kind is AssociationKind.OWNING_TO_MANY
    assert association.join_table == "shelf_contents"
    assert association.join_columns == ("shelf_code",)


def test_one_to_one_owning_side():
    association = metadata.association(Badge, "holder")
    assert association.is_owning_to_one
    assert association.column == "holder_id"


def test_associations_are_cached_and_hashable():
    first = metadata.associations(Author)
    assert metadata.associations(Author) is first
    assert len({association for association in first}) == 3


def test_unknown_association():
    with pytest.raises(KeyError):
        metadata.association(Book, "missing")


def test_reference_to_composite_identifier_rejected():
    with pytest.raises(ModelConfigurationError):
        ModelMetadataProvider().associations(Marker)


def test_generators():
    assert isinstance(metadata.id_generator(Book), IdentityGenerator)
    assert metadata.id_generator(Book).is_post_insert
    assert isinstance(metadata.id_generator(Ticket), UUIDGenerator)
    assert isinstance(metadata.id_generator(Shelf), AssignedGenerator)
    assert metadata.is_identifier_assigned_by_application(Grid)
    assert not metadata.is_identifier_assigned_by_application(Book)


def test_uuid_generator_keeps_existing_value():
    ticket = Ticket()
    generated = metadata.id_generator(Ticket).generate(metadata, ticket)
    assert len(generated) == 1 and len(generated[0]) == 36
    preset = Ticket(key="0f8fad5b-d9cb-469f-a165-70867728950e")
    assert metadata.id_generator(Ticket).generate(metadata, preset) == (preset.key,)


def test_assigned_generator_requires_values():
    with pytest.raises(MissingIdentityError):
        metadata.id_generator(Grid).generate(metadata, Grid(x=1))
    assert metadata.id_generator(Grid).generate(metadata, Grid(x=1, y=2)) == (1, 2)


def test_identifier_values_and_fields():
    assert metadata.identifier_fields(Grid) == ["x", "y"]
    assert metadata.identifier_values(Grid(x=4, y=5)) == (4, 5)
    assert metadata.identifier_values(Book(title="t")) == (None,)
    assert metadata.has_identifier(Grid(x=4, y=5))
    assert not metadata.has_identifier(Grid(x=4))


def test_from_row_maps_columns_to_fields():
    data = metadata.from_row(Book, {"id": 3, "title": "Dune", "author_id": 9, "published": 1})
    assert data == {"id": 3, "title": "Dune", "author": 9, "published": True}


def test_new_instance_skips_init():
    book = metadata.new_instance(Book)
    assert isinstance(book, Book)
    assert book.title is None
    assert metadata.is_entity(book)
    assert not metadata.is_entity(object())
