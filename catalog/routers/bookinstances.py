import logging
from datetime import date

from fastapi import APIRouter, Depends, Request
from sqlalchemy import delete, select
from sqlalchemy.orm import joinedload

from catalog import models, schemas
from catalog.database import Store, get_store
from catalog.routers.common import not_found, record_exists, redirect
from catalog.templating import templates


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/catalog", tags=["bookinstances"])


def get_instance(instance_id):
    def query(db):
        stmt = (
            select(models.BookInstance)
            .where(models.BookInstance.id == instance_id)
            .options(joinedload(models.BookInstance.book))
        )
        return db.scalars(stmt).first()

    return query


def all_books(db):
    return db.scalars(select(models.Book).order_by(models.Book.title)).all()


def apply_form(instance, form):
    instance.book_id = form.book
    instance.imprint = form.imprint
    instance.status = form.status
    instance.due_back = form.due_back or date.today()
    return instance


def add_instance(db, form):
    instance = apply_form(models.BookInstance(), form)
    db.add(instance)
    db.flush()
    return instance


def update_instance(db, instance_id, form):
    instance = db.get(models.BookInstance, instance_id)
    if instance is None:
        return None
    return apply_form(instance, form)


def delete_instance(db, instance_id):
    result = db.execute(
        delete(models.BookInstance).where(models.BookInstance.id == instance_id),
        execution_options={"synchronize_session": False},
    )
    return result.rowcount


def form_values(instance):
    return {
        "book": instance.book_id,
        "imprint": instance.imprint,
        "status": instance.status,
        "due_back": instance.due_back_yyyy_mm_dd,
    }


async def render_form(request, store, title, values=None, errors=None):
    books = await store.run(all_books)
    return templates.TemplateResponse(
        request,
        "bookinstance_form.html",
        {
            "title": title,
            "book_list": books,
            "bookinstance": values,
            "statuses": models.BOOK_INSTANCE_STATUSES,
            "errors": errors,
        },
    )


@router.get("/bookinstances")
async def bookinstance_list(request: Request, store: Store = Depends(get_store)):
    """Display every copy with the book it belongs to."""
    instances = await store.run(
        lambda db: db.scalars(
            select(models.BookInstance).options(joinedload(models.BookInstance.book))
        ).all()
    )
    return templates.TemplateResponse(
        request,
        "bookinstance_list.html",
        {"title": "Book Instance List", "bookinstance_list": instances},
    )


@router.get("/bookinstance/create")
async def bookinstance_create_get(request: Request, store: Store = Depends(get_store)):
    """Empty copy form with every book to choose from."""
    return await render_form(request, store, "Create BookInstance")


@router.post("/bookinstance/create")
async def bookinstance_create_post(request: Request, store: Store = Depends(get_store)):
    """
    Record a new copy of a book.

    Business Logic:
    - book and imprint must not be empty after trimming
    - book must be the id of a stored book
    - status must be one of the known statuses
    - an empty due date means today
    """
    form, values, errors = schemas.read_form(schemas.BookInstanceForm, await request.form())
    if not errors and not await store.run(record_exists(models.Book, form.book)):
        errors = [schemas.reference_error(schemas.BookInstanceForm, "book", values)]
    if errors:
        return await render_form(request, store, "Create BookInstance", values, errors)

    instance = await store.run(add_instance, form)
    logger.info("Created book instance %s of book %s", instance.id, instance.book_id)
    return redirect(instance.url)


@router.get("/bookinstance/{instance_id}")
async def bookinstance_detail(instance_id: str, request: Request, store: Store = Depends(get_store)):
    """Display one copy and the book it belongs to; 404 if the id is unknown."""
    instance = await store.run(get_instance(instance_id))
    if instance is None:
        raise not_found("Book copy")
    title = instance.book.title if instance.book else instance.imprint
    return templates.TemplateResponse(
        request,
        "bookinstance_detail.html",
        {"title": f"Copy: {title}", "bookinstance": instance},
    )


@router.get("/bookinstance/{instance_id}/delete")
async def bookinstance_delete_get(instance_id: str, request: Request, store: Store = Depends(get_store)):
    """
    Ask for confirmation before deleting a copy.

    An unknown id sends the browser back to the copy list.
    """
    instance = await store.run(get_instance(instance_id))
    if instance is None:
        return redirect("/catalog/bookinstances")
    return templates.TemplateResponse(
        request,
        "bookinstance_delete.html",
        {"title": "Delete BookInstance", "bookinstance": instance},
    )


@router.post("/bookinstance/{instance_id}/delete")
async def bookinstance_delete_post(instance_id: str, store: Store = Depends(get_store)):
    """
    Delete a copy and return to the copy list.

    Nothing references a copy, so no check is needed; deleting an id that
    is already gone is not an error.
    """
    if await store.run(delete_instance, instance_id):
        logger.info("Deleted book instance %s", instance_id)
    return redirect("/catalog/bookinstances")


@router.get("/bookinstance/{instance_id}/update")
async def bookinstance_update_get(instance_id: str, request: Request, store: Store = Depends(get_store)):
    """Copy form filled in with the stored values; 404 if the id is unknown."""
    instance = await store.run(get_instance(instance_id))
    if instance is None:
        raise not_found("Book copy")
    return await render_form(request, store, "Update BookInstance", form_values(instance))


@router.post("/bookinstance/{instance_id}/update")
async def bookinstance_update_post(instance_id: str, request: Request, store: Store = Depends(get_store)):
    """
    Save changes to a copy under its existing id.

    Validation is the same as for create; an unknown copy id is a 404.
    """
    form, values, errors = schemas.read_form(schemas.BookInstanceForm, await request.form())
    if not errors and not await store.run(record_exists(models.Book, form.book)):
        errors = [schemas.reference_error(schemas.BookInstanceForm, "book", values)]
    if errors:
        return await render_form(request, store, "Update BookInstance", values, errors)

    instance = await store.run(update_instance, instance_id, form)
    if instance is None:
        raise not_found("Book copy")
    logger.info("Updated book instance %s", instance.id)
    return redirect(instance.url)
