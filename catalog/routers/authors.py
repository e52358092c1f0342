import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy import select

from catalog import models, schemas
from catalog.database import Store, get_store
from catalog.routers.common import not_found, not_implemented, redirect
from catalog.templating import templates


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/catalog", tags=["authors"])


def get_author(author_id):
    def query(db):
        return db.get(models.Author, author_id)

    return query


def books_by(author_id):
    def query(db):
        stmt = (
            select(models.Book)
            .where(models.Book.author_id == author_id)
            .order_by(models.Book.title)
        )
        return db.scalars(stmt).all()

    return query


def apply_form(author, form):
    author.first_name = form.first_name
    author.family_name = form.family_name
    author.date_of_birth = form.date_of_birth
    author.date_of_death = form.date_of_death
    return author


def add_author(db, form):
    author = apply_form(models.Author(), form)
    db.add(author)
    db.flush()
    return author


def update_author(db, author_id, form):
    author = db.get(models.Author, author_id)
    if author is None:
        return None
    return apply_form(author, form)


def form_values(author):
    return {
        "first_name": author.first_name,
        "family_name": author.family_name,
        "date_of_birth": author.date_of_birth_yyyy_mm_dd,
        "date_of_death": author.date_of_death_yyyy_mm_dd,
    }


@router.get("/authors")
async def author_list(request: Request, store: Store = Depends(get_store)):
    """Display all authors sorted by family name."""
    authors = await store.run(
        lambda db: db.scalars(
            select(models.Author).order_by(models.Author.family_name.asc())
        ).all()
    )
    return templates.TemplateResponse(
        request, "author_list.html", {"title": "Author List", "author_list": authors}
    )


@router.get("/author/create")
async def author_create_get(request: Request):
    """Empty author form."""
    return templates.TemplateResponse(request, "author_form.html", {"title": "Create Author"})


@router.post("/author/create")
async def author_create_post(request: Request, store: Store = Depends(get_store)):
    """
    Create an author.

    Business Logic:
    - first and family name must not be empty after trimming
    - dates are optional, but must be YYYY-MM-DD when given
    """
    form, values, errors = schemas.read_form(schemas.AuthorForm, await request.form())
    if errors:
        return templates.TemplateResponse(
            request,
            "author_form.html",
            {"title": "Create Author", "author": values, "errors": errors},
        )

    author = await store.run(add_author, form)
    logger.info("Created author %s (%s)", author.id, author.name)
    return redirect(author.url)


@router.get("/author/{author_id}")
async def author_detail(author_id: str, request: Request, store: Store = Depends(get_store)):
    """Display one author with the books they wrote."""
    results = await store.gather(author=get_author(author_id), author_books=books_by(author_id))
    if results["author"] is None:
        raise not_found("Author")
    return templates.TemplateResponse(
        request,
        "author_detail.html",
        {
            "title": "Author Detail",
            "author": results["author"],
            "author_books": results["author_books"],
        },
    )


@router.get("/author/{author_id}/delete")
async def author_delete_get(author_id: str):
    """Placeholder: authors cannot be deleted yet."""
    return not_implemented("Author delete GET")


@router.post("/author/{author_id}/delete")
async def author_delete_post(author_id: str):
    """Placeholder: authors cannot be deleted yet."""
    return not_implemented("Author delete POST")


@router.get("/author/{author_id}/update")
async def author_update_get(author_id: str, request: Request, store: Store = Depends(get_store)):
    """Author form filled in with the stored values; 404 if the id is unknown."""
    author = await store.run(get_author(author_id))
    if author is None:
        raise not_found("Author")
    return templates.TemplateResponse(
        request,
        "author_form.html",
        {"title": "Update Author", "author": form_values(author)},
    )


@router.post("/author/{author_id}/update")
async def author_update_post(author_id: str, request: Request, store: Store = Depends(get_store)):
    """
    Save changes to an author under the existing id.

    Validation is the same as for create; an unknown id is a 404.
    """
    form, values, errors = schemas.read_form(schemas.AuthorForm, await request.form())
    if errors:
        return templates.TemplateResponse(
            request,
            "author_form.html",
            {"title": "Update Author", "author": values, "errors": errors},
        )

    author = await store.run(update_author, author_id, form)
    if author is None:
        raise not_found("Author")
    logger.info("Updated author %s", author.id)
    return redirect(author.url)
