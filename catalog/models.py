import uuid
from datetime import date

from sqlalchemy.orm import relationship
from sqlalchemy import Column, Date, Enum, ForeignKey, String, Table, Text

from catalog.database import Base


BOOK_INSTANCE_STATUSES = ("Available", "Maintenance", "Loaned", "Reserved")


def new_id() -> str:
    return uuid.uuid4().hex


def format_date_med(value):
    """Medium display format, e.g. 'Oct 18, 2026'. Empty for missing dates."""
    if value is None:
        return ""
    return f"{value:%b} {value.day}, {value.year}"


def format_date_yyyy_mm_dd(value):
    """Value for an <input type="date">. Month and day are both zero-padded."""
    if value is None:
        return ""
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


book_genre = Table(
    "book_genre",
    Base.metadata,
    Column("book_id", String(32), ForeignKey("books.id", ondelete="CASCADE"), primary_key=True),
    Column("genre_id", String(32), ForeignKey("genres.id"), primary_key=True),
)


class Author(Base):
    """
    Author of one or more books.

    Relationships:
    - One author can have many books (one-to-many)

    Author deletion is not offered, so nothing cascades from here.
    """

    __tablename__ = "authors"

    id = Column(String(32), primary_key=True, default=new_id)
    first_name = Column(String(100), nullable=False)
    family_name = Column(String(100), nullable=False, index=True)
    date_of_birth = Column(Date, nullable=True)
    date_of_death = Column(Date, nullable=True)

    books = relationship("Book", back_populates="author")

    @property
    def name(self):
        return f"{self.family_name}, {self.first_name}"

    @property
    def lifespan(self):
        return f"{format_date_med(self.date_of_birth)} - {format_date_med(self.date_of_death)}"

    @property
    def date_of_birth_yyyy_mm_dd(self):
        return format_date_yyyy_mm_dd(self.date_of_birth)

    @property
    def date_of_death_yyyy_mm_dd(self):
        return format_date_yyyy_mm_dd(self.date_of_death)

    @property
    def url(self):
        return f"/catalog/author/{self.id}"


class Genre(Base):
    """
    Book category.

    Names are meant to be unique, but only the create flow checks it;
    there is no database constraint.
    """

    __tablename__ = "genres"

    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String(100), nullable=False, index=True)

    books = relationship("Book", secondary=book_genre, back_populates="genre")

    @property
    def url(self):
        return f"/catalog/genre/{self.id}"


class Book(Base):
    """
    A title in the catalog.

    Relationships:
    - Many books belong to one author (many-to-one)
    - Books and genres are many-to-many through book_genre
    - One book has many physical copies (BookInstance)
    """

    __tablename__ = "books"

    id = Column(String(32), primary_key=True, default=new_id)
    title = Column(String(500), nullable=False, index=True)
    summary = Column(Text, nullable=False)
    isbn = Column(String(50), nullable=False)
    author_id = Column(String(32), ForeignKey("authors.id"), nullable=False)

    author = relationship("Author", back_populates="books")
    genre = relationship("Genre", secondary=book_genre, back_populates="books")
    instances = relationship("BookInstance", back_populates="book")

    @property
    def url(self):
        return f"/catalog/book/{self.id}"


class BookInstance(Base):
    """
    A physical copy of a book that can be lent out.

    status is one of BOOK_INSTANCE_STATUSES and starts as Maintenance.
    due_back defaults to the day the copy was recorded.
    """

    __tablename__ = "bookinstances"

    id = Column(String(32), primary_key=True, default=new_id)
    book_id = Column(String(32), ForeignKey("books.id"), nullable=False, index=True)
    imprint = Column(String(500), nullable=False)
    status = Column(
        Enum(*BOOK_INSTANCE_STATUSES, name="bookinstance_status"),
        nullable=False,
        default="Maintenance",
    )
    due_back = Column(Date, nullable=False, default=date.today)

    book = relationship("Book", back_populates="instances")

    @property
    def url(self):
        return f"/catalog/bookinstance/{self.id}"

    @property
    def due_back_formatted(self):
        return format_date_med(self.due_back)

    @property
    def due_back_yyyy_mm_dd(self):
        return format_date_yyyy_mm_dd(self.due_back)
