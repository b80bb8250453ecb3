"""
Library example showing cascaded saves, join-table collections and
cascaded deletes through a single session.
"""

from __future__ import annotations

from typing import Any, Dict, List

from cascadeorm.adapters import SQLiteAdapter
from cascadeorm.persistence import Session
from cascadeorm.schema import SchemaBuilder

from .models import Book, Genre, Writer


def bootstrap_session(dsn: str = "sqlite:///:memory:") -> Session:
    adapter = SQLiteAdapter()
    session = Session(adapter, dsn=dsn)
    SchemaBuilder(session.dialect).create_all(session.adapter, [Writer, Genre, Book])
    return session


def seed_sample_data(session: Session) -> Dict[str, List[Dict[str, Any]]]:
    sci_fi = Genre(name="Sci-Fi")
    magical = Genre(name="Magical Realism")
    fantasy = Genre(name="Fantasy")

    butler = Writer(name="Octavia Butler", country="USA")
    murakami = Writer(name="Haruki Murakami", country="Japan")
    books = [
        Book(title="Kindred", published=True, author=butler, genres=[sci_fi]),
        Book(title="Kafka on the Shore", published=True, author=murakami, genres=[magical, fantasy]),
        Book(title="Unfinished Draft", author=murakami),
    ]
    for book in books:
        book.author.books.append(book)

    # Books and genres follow the writers through their cascades.
    with session.transaction():
        session.save(butler)
        session.save(murakami)

    return {
        "writers": [writer.to_dict() for writer in (butler, murakami)],
        "genres": [genre.to_dict() for genre in (sci_fi, magical, fantasy)],
        "books": [book.to_dict() for book in books],
    }


def fetch_catalogue(session: Session) -> List[Dict[str, Any]]:
    q = session.dialect.quote_identifier
    rows = session.execute(
        f"SELECT {q('id')} FROM {q('book')} WHERE {q('published')} = ? ORDER BY {q('id')}",
        (1,),
    ).fetchall()
    result: List[Dict[str, Any]] = []
    for row in rows:
        book = session.get(Book, row[0])
        genre_rows = session.execute(
            f"SELECT {q('genre_id')} FROM {q('book_genres')} WHERE {q('book_id')} = ? ORDER BY {q('genre_id')}",
            (book.id,),
        ).fetchall()
        genres = [session.get(Genre, genre_row[0]) for genre_row in genre_rows]
        result.append(
            {
                "title": book.title,
                "author": book.author.name if book.author else None,
                "genres": [genre.name for genre in genres],
            }
        )
    return result


def retire_writer(session: Session, writer: Writer) -> int:
    """
    Delete ``writer`` together with their books; returns the remaining book count.
    """
    with session.transaction():
        session.delete(writer)
    return session.execute('SELECT COUNT(*) FROM "book"').fetchone()[0]


def run_demo(dsn: str = "sqlite:///:memory:") -> List[Dict[str, Any]]:
    session = bootstrap_session(dsn)
    try:
        seed_sample_data(session)
        return fetch_catalogue(session)
    finally:
        session.close()


if __name__ == "__main__":
    feed = run_demo("sqlite:///library_demo.db")
    for entry in feed:
        print(f"{entry['title']} by {entry['author']} [{', '.join(entry['genres'])}]")
