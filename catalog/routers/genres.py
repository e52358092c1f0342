import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy import delete, exists, select
from sqlalchemy.orm import joinedload, selectinload

from catalog import models, schemas
from catalog.database import Store, get_store
from catalog.routers.common import not_found, redirect
from catalog.templating import templates


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/catalog", tags=["genres"])


def books_in_genre(genre_id, with_relations=False):
    def query(db):
        stmt = select(models.Book).where(models.Book.genre.any(models.Genre.id == genre_id))
        if with_relations:
            stmt = stmt.options(joinedload(models.Book.author), selectinload(models.Book.genre))
        return db.scalars(stmt.order_by(models.Book.title)).unique().all()

    return query


def get_genre(genre_id):
    def query(db):
        return db.get(models.Genre, genre_id)

    return query


def find_genre_by_name(db, name):
    return db.scalars(select(models.Genre).where(models.Genre.name == name)).first()


def add_genre(db, form):
    genre = models.Genre(name=form.name)
    db.add(genre)
    db.flush()
    return genre


def update_genre(db, genre_id, form):
    genre = db.get(models.Genre, genre_id)
    if genre is None:
        return None
    genre.name = form.name
    return genre


def delete_unused_genre(db, genre_id):
    """
    Delete the genre only if no book references it.

    The reference check is part of the DELETE statement itself, so a book
    tagged with the genre between the page load and the delete blocks it.

    Returns:
        Number of genres deleted (0 or 1)
    """
    referenced = exists().where(models.book_genre.c.genre_id == genre_id)
    result = db.execute(
        delete(models.Genre).where(models.Genre.id == genre_id, ~referenced),
        execution_options={"synchronize_session": False},
    )
    return result.rowcount


@router.get("/genres")
async def genre_list(request: Request, store: Store = Depends(get_store)):
    """Display all genres sorted by name."""
    genres = await store.run(
        lambda db: db.scalars(select(models.Genre).order_by(models.Genre.name.asc())).all()
    )
    return templates.TemplateResponse(
        request, "genre_list.html", {"title": "Genre List", "genre_list": genres}
    )


@router.get("/genre/create")
async def genre_create_get(request: Request):
    """Empty genre form."""
    return templates.TemplateResponse(request, "genre_form.html", {"title": "Create Genre"})


@router.post("/genre/create")
async def genre_create_post(request: Request, store: Store = Depends(get_store)):
    """
    Create a genre.

    Business Logic:
    - name is trimmed, escaped and must not be empty
    - if a genre with exactly that name exists, redirect to it instead of
      creating a duplicate
    """
    form, values, errors = schemas.read_form(schemas.GenreForm, await request.form())
    if errors:
        return templates.TemplateResponse(
            request,
            "genre_form.html",
            {"title": "Create Genre", "genre": values, "errors": errors},
        )

    found = await store.run(find_genre_by_name, form.name)
    if found is not None:
        logger.info("Genre %r already exists as %s", form.name, found.id)
        return redirect(found.url)

    genre = await store.run(add_genre, form)
    logger.info("Created genre %s (%s)", genre.id, genre.name)
    return redirect(genre.url)


@router.get("/genre/{genre_id}")
async def genre_detail(genre_id: str, request: Request, store: Store = Depends(get_store)):
    """Display one genre with the books filed under it."""
    results = await store.gather(genre=get_genre(genre_id), genre_books=books_in_genre(genre_id))
    if results["genre"] is None:
        raise not_found("Genre")
    return templates.TemplateResponse(
        request,
        "genre_detail.html",
        {"title": "Genre Detail", "genre": results["genre"], "genre_books": results["genre_books"]},
    )


@router.get("/genre/{genre_id}/delete")
async def genre_delete_get(genre_id: str, request: Request, store: Store = Depends(get_store)):
    """
    Ask for confirmation before deleting a genre.

    Internal Working:
    1. The genre and the books using it are fetched concurrently
    2. An unknown id sends the browser back to the genre list
    3. Books using the genre are listed, since they block the delete
    """
    results = await store.gather(
        genre=get_genre(genre_id), books=books_in_genre(genre_id, with_relations=True)
    )
    if results["genre"] is None:
        return redirect("/catalog/genres")
    return templates.TemplateResponse(
        request,
        "genre_delete.html",
        {"title": "Delete Genre", "genre": results["genre"], "books": results["books"]},
    )


@router.post("/genre/{genre_id}/delete")
async def genre_delete_post(genre_id: str, request: Request, store: Store = Depends(get_store)):
    """
    Delete a genre that no book uses.

    Business Logic:
    - while any book references the genre, the confirmation page is shown
      again with those books and nothing is deleted
    - otherwise the genre is removed and the genre list is shown
    """
    results = await store.gather(
        genre=get_genre(genre_id), books=books_in_genre(genre_id, with_relations=True)
    )
    if results["genre"] is not None and not results["books"]:
        if await store.run(delete_unused_genre, genre_id):
            logger.info("Deleted genre %s", genre_id)
            return redirect("/catalog/genres")
        results = await store.gather(
            genre=get_genre(genre_id), books=books_in_genre(genre_id, with_relations=True)
        )

    if results["genre"] is None or not results["books"]:
        return redirect("/catalog/genres")

    logger.info("Genre %s is used by %d books, not deleting", genre_id, len(results["books"]))
    return templates.TemplateResponse(
        request,
        "genre_delete.html",
        {"title": "Delete Genre", "genre": results["genre"], "books": results["books"]},
    )


@router.get("/genre/{genre_id}/update")
async def genre_update_get(genre_id: str, request: Request, store: Store = Depends(get_store)):
    """Genre form filled in with the stored name; 404 if the id is unknown."""
    genre = await store.run(get_genre(genre_id))
    if genre is None:
        raise not_found("Genre")
    return templates.TemplateResponse(
        request, "genre_form.html", {"title": "Update Genre", "genre": genre}
    )


@router.post("/genre/{genre_id}/update")
async def genre_update_post(genre_id: str, request: Request, store: Store = Depends(get_store)):
    """
    Rename a genre, keeping its id.

    An empty name shows the form again with the error; an unknown id is a
    404. Unlike create, no duplicate-name check is made.
    """
    form, values, errors = schemas.read_form(schemas.GenreForm, await request.form())
    if errors:
        return templates.TemplateResponse(
            request,
            "genre_form.html",
            {"title": "Update Genre", "genre": values, "errors": errors},
        )

    genre = await store.run(update_genre, genre_id, form)
    if genre is None:
        raise not_found("Genre")
    logger.info("Updated genre %s", genre.id)
    return redirect(genre.url)
