import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import RedirectResponse
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from catalog import config, models
from catalog.database import Store, get_store
from catalog.routers import authors, bookinstances, books, genres
from catalog.templating import templates


logger = logging.getLogger(__name__)


def count_query(model, *criteria):
    def query(db):
        stmt = select(func.count()).select_from(model)
        if criteria:
            stmt = stmt.where(*criteria)
        return db.scalar(stmt)

    return query


def create_app(store: Optional[Store] = None) -> FastAPI:
    """
    Build the application around a Store.

    Internal Working:
    1. The Store is created here (or passed in by tests) and attached to
       app.state, where the get_store dependency finds it
    2. lifespan creates the tables at startup and disposes the engine at
       shutdown
    3. Error handlers render HTTP errors and store failures through the
       error template
    """
    store = store or Store(config.DATABASE_URL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.basicConfig(level=config.LOG_LEVEL)
        store.create_all()
        logger.info("Catalog store ready at %s", store.engine.url)
        try:
            yield
        finally:
            store.dispose()

    app = FastAPI(
        title=config.APP_TITLE,
        description="Catalog management for a small lending library",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.store = store

    app.include_router(books.router)
    app.include_router(authors.router)
    app.include_router(genres.router)
    app.include_router(bookinstances.router)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return templates.TemplateResponse(
            request,
            "error.html",
            {"message": exc.detail, "status_code": exc.status_code},
            status_code=exc.status_code,
        )

    @app.exception_handler(SQLAlchemyError)
    async def store_error(request: Request, exc: SQLAlchemyError):
        logger.exception("Store failure on %s %s", request.method, request.url.path)
        return templates.TemplateResponse(
            request,
            "error.html",
            {"message": "Database error", "status_code": 500},
            status_code=500,
        )

    @app.get("/health")
    async def health_check():
        """
        Health check endpoint for monitoring and load balancers.

        Returns:
            Simple status message indicating the service is running
        """
        return {"status": "healthy", "service": "locallibrary"}

    @app.get("/")
    async def root():
        return RedirectResponse("/catalog/")

    @app.get("/catalog/")
    async def index(request: Request, store: Store = Depends(get_store)):
        """
        Home page with collection counts.

        All five counts are fetched concurrently. A store failure does not
        abort the page: the first error is shown in place of the counts.
        """
        error = None
        data = {}
        try:
            data = await store.gather(
                book_count=count_query(models.Book),
                book_instance_count=count_query(models.BookInstance),
                book_instance_available_count=count_query(
                    models.BookInstance, models.BookInstance.status == "Available"
                ),
                author_count=count_query(models.Author),
                genre_count=count_query(models.Genre),
            )
        except SQLAlchemyError as exc:
            logger.exception("Could not count catalog collections")
            error = exc
        return templates.TemplateResponse(
            request,
            "index.html",
            {"title": "Local Library Home", "error": error, "data": data},
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("catalog.endpoints:app", host="127.0.0.1", port=8000, reload=True)
