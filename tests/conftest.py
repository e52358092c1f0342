from datetime import date

import pytest
from fastapi.testclient import TestClient

from catalog import models
from catalog.database import Store
from catalog.endpoints import create_app


TEST_DATABASE_URL = "sqlite:///./test.db"
store = Store(TEST_DATABASE_URL)
app = create_app(store)


@pytest.fixture(autouse=True)
def setup_database():
    """
    Fixture to set up and tear down the database for each test.

    Every test starts with empty tables and leaves nothing behind.
    """
    store.create_all()
    yield
    store.drop_all()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def catalog_store():
    return store


def save(obj):
    with store.session() as db:
        db.add(obj)
        db.flush()
        return obj.id


@pytest.fixture
def make_author():
    def make(first_name="Isaac", family_name="Asimov", **kwargs):
        return save(models.Author(first_name=first_name, family_name=family_name, **kwargs))

    return make


@pytest.fixture
def make_genre():
    def make(name="Science Fiction"):
        return save(models.Genre(name=name))

    return make


@pytest.fixture
def make_book(make_author):
    def make(title="Foundation", author_id=None, genre_ids=(), **kwargs):
        author_id = author_id or make_author()
        with store.session() as db:
            genres = [db.get(models.Genre, genre_id) for genre_id in genre_ids]
            book = models.Book(
                title=title,
                author_id=author_id,
                summary=kwargs.pop("summary", "A galactic empire falls."),
                isbn=kwargs.pop("isbn", "9780553293357"),
                genre=genres,
                **kwargs,
            )
            db.add(book)
            db.flush()
            return book.id

    return make


@pytest.fixture
def make_instance(make_book):
    def make(book_id=None, imprint="Gnome Press, 1951", status="Available", due_back=None):
        return save(
            models.BookInstance(
                book_id=book_id or make_book(),
                imprint=imprint,
                status=status,
                due_back=due_back or date(2026, 10, 18),
            )
        )

    return make


def load(model, obj_id):
    with store.session() as db:
        return db.get(model, obj_id)
