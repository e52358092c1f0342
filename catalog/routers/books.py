import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy import select
from sqlalchemy.orm import joinedload, selectinload

from catalog import models, schemas
from catalog.database import Store, get_store
from catalog.routers.common import (
    mark_checked,
    not_found,
    not_implemented,
    record_exists,
    redirect,
)
from catalog.templating import templates


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/catalog", tags=["books"])


def get_book(book_id):
    def query(db):
        stmt = (
            select(models.Book)
            .where(models.Book.id == book_id)
            .options(joinedload(models.Book.author), selectinload(models.Book.genre))
        )
        return db.scalars(stmt).unique().first()

    return query


def instances_of(book_id):
    def query(db):
        stmt = select(models.BookInstance).where(models.BookInstance.book_id == book_id)
        return db.scalars(stmt).all()

    return query


def all_authors(db):
    return db.scalars(select(models.Author).order_by(models.Author.family_name)).all()


def all_genres(db):
    return db.scalars(select(models.Genre).order_by(models.Genre.name)).all()


def apply_form(db, book, form):
    book.title = form.title
    book.author_id = form.author
    book.summary = form.summary
    book.isbn = form.isbn
    if form.genre:
        book.genre = db.scalars(select(models.Genre).where(models.Genre.id.in_(form.genre))).all()
    else:
        book.genre = []
    return book


def add_book(db, form):
    book = apply_form(db, models.Book(), form)
    db.add(book)
    db.flush()
    return book


def update_book(db, book_id, form):
    book = db.get(models.Book, book_id)
    if book is None:
        return None
    return apply_form(db, book, form)


def form_values(book):
    """Form field values for an existing book."""
    return {
        "title": book.title,
        "author": book.author_id,
        "summary": book.summary,
        "isbn": book.isbn,
        "genre": [genre.id for genre in book.genre],
    }


async def render_form_with_errors(request, store, title, values, errors):
    """
    Show the book form again after a failed submission.

    The author and genre choices are fetched again and the genres the user
    ticked stay ticked.
    """
    results = await store.gather(authors=all_authors, genres=all_genres)
    return templates.TemplateResponse(
        request,
        "book_form.html",
        {
            "title": title,
            "authors": results["authors"],
            "genres": mark_checked(results["genres"], values["genre"]),
            "book": values,
            "errors": errors,
        },
    )


@router.get("/books")
async def book_list(request: Request, store: Store = Depends(get_store)):
    """Display all books with their authors."""
    books = await store.run(
        lambda db: db.scalars(
            select(models.Book).options(joinedload(models.Book.author)).order_by(models.Book.title)
        ).all()
    )
    return templates.TemplateResponse(
        request, "book_list.html", {"title": "Book List", "book_list": books}
    )


@router.get("/book/create")
async def book_create_get(request: Request, store: Store = Depends(get_store)):
    """Empty book form with every author and genre to choose from."""
    results = await store.gather(authors=all_authors, genres=all_genres)
    return templates.TemplateResponse(
        request,
        "book_form.html",
        {"title": "Create Book", "authors": results["authors"], "genres": results["genres"]},
    )


@router.post("/book/create")
async def book_create_post(request: Request, store: Store = Depends(get_store)):
    """
    Create a book.

    Business Logic:
    - genre may be absent, a single id or several ids
    - title, author, summary and isbn must not be empty after trimming
    - author must be the id of a stored author
    - on errors nothing is saved and the form is shown again with the
      submitted values
    """
    form, values, errors = schemas.read_form(schemas.BookForm, await request.form())
    if not errors and not await store.run(record_exists(models.Author, form.author)):
        errors = [schemas.reference_error(schemas.BookForm, "author", values)]
    if errors:
        return await render_form_with_errors(request, store, "Create Book", values, errors)

    book = await store.run(add_book, form)
    logger.info("Created book %s (%s)", book.id, book.title)
    return redirect(book.url)


@router.get("/book/{book_id}")
async def book_detail(book_id: str, request: Request, store: Store = Depends(get_store)):
    """Display one book with its author, genres and copies."""
    results = await store.gather(book=get_book(book_id), book_instances=instances_of(book_id))
    book = results["book"]
    if book is None:
        raise not_found("Book")
    return templates.TemplateResponse(
        request,
        "book_detail.html",
        {"title": book.title, "book": book, "book_instances": results["book_instances"]},
    )


@router.get("/book/{book_id}/delete")
async def book_delete_get(book_id: str):
    """Placeholder: books cannot be deleted yet."""
    return not_implemented("Book delete GET")


@router.post("/book/{book_id}/delete")
async def book_delete_post(book_id: str):
    """Placeholder: books cannot be deleted yet."""
    return not_implemented("Book delete POST")


@router.get("/book/{book_id}/update")
async def book_update_get(book_id: str, request: Request, store: Store = Depends(get_store)):
    """
    Book form filled in with the stored values.

    Internal Working:
    1. The book, all authors and all genres are fetched concurrently
    2. An unknown id is a 404
    3. The book's current genres are ticked, matching ids as strings
    """
    results = await store.gather(book=get_book(book_id), authors=all_authors, genres=all_genres)
    book = results["book"]
    if book is None:
        raise not_found("Book")

    values = form_values(book)
    return templates.TemplateResponse(
        request,
        "book_form.html",
        {
            "title": "Update Book",
            "authors": results["authors"],
            "genres": mark_checked(results["genres"], values["genre"]),
            "book": values,
        },
    )


@router.post("/book/{book_id}/update")
async def book_update_post(book_id: str, request: Request, store: Store = Depends(get_store)):
    """
    Save changes to a book under its existing id.

    Validation is the same as for create. On success the browser is sent to
    the book's detail page; an unknown book id is a 404.
    """
    form, values, errors = schemas.read_form(schemas.BookUpdateForm, await request.form())
    if not errors and not await store.run(record_exists(models.Author, form.author)):
        errors = [schemas.reference_error(schemas.BookUpdateForm, "author", values)]
    if errors:
        return await render_form_with_errors(request, store, "Update Book", values, errors)

    book = await store.run(update_book, book_id, form)
    if book is None:
        raise not_found("Book")
    logger.info("Updated book %s", book.id)
    return redirect(book.url)
