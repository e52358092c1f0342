import asyncio
import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from starlette.concurrency import run_in_threadpool


logger = logging.getLogger(__name__)

Base = declarative_base()


class Store:
    """
    Handle on the entity store.

    One Store is created at process startup and shared by every request.
    It owns the engine and the session factory; workflow code never touches
    a global connection.

    Internal Working:
    - Each query function receives its own short-lived Session
    - Sessions use expire_on_commit=False so returned rows stay readable
      after the session is closed
    - Query functions must eager-load every relationship the caller reads,
      because lazy loads are impossible once the row is detached
    """

    def __init__(self, url: str):
        self.url = url
        self.engine = create_engine(
            url,
            connect_args={"check_same_thread": False} if url.startswith("sqlite") else {},
        )
        self.session_factory = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=self.engine
        )

    def create_all(self):
        Base.metadata.create_all(bind=self.engine)

    def drop_all(self):
        Base.metadata.drop_all(bind=self.engine)

    def dispose(self):
        self.engine.dispose()

    @contextmanager
    def session(self):
        """
        Provide a transactional session.

        Commits when the block exits cleanly, rolls back and re-raises
        otherwise, and always closes the session.
        """
        db = self.session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _call(self, query: Callable[..., Any], *args) -> Any:
        with self.session() as db:
            return query(db, *args)

    async def run(self, query: Callable[..., Any], *args) -> Any:
        """Run one query function in the threadpool with a fresh session."""
        return await run_in_threadpool(self._call, query, *args)

    async def gather(self, **queries: Callable[[Session], Any]) -> Dict[str, Any]:
        """
        Fan out independent queries and wait for all of them.

        Args:
            queries: name -> function taking a Session

        Returns:
            Dictionary of name -> result, in the order given

        Raises:
            The first exception raised by any query
        """
        names = list(queries)
        results = await asyncio.gather(*(self.run(queries[name]) for name in names))
        return dict(zip(names, results))


def get_store(request: Request) -> Store:
    """
    Dependency returning the Store attached to the running application.

    Tests swap the store by building the app with their own Store.
    """
    return request.app.state.store
