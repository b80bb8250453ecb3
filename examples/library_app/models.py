"""
Data models for the cascadeorm library example.
"""

from __future__ import annotations

from cascadeorm.core import BooleanField, ForeignKey, ManyToManyField, Model, OneToMany, StringField


class Writer(Model):
    name = StringField(nullable=False, max_length=120)
    country = StringField(nullable=True)
    books = OneToMany("Book", mapped_by="author", cascade="all")


class Genre(Model):
    name = StringField(nullable=False, unique=True, max_length=80)


class Book(Model):
    title = StringField(nullable=False, max_length=200)
    published = BooleanField(default=False)
    author = ForeignKey(Writer, cascade="save")
    genres = ManyToManyField(Genre, cascade="save")
