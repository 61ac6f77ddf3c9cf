from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager
from functools import lru_cache

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from casedesk.infrastructure.db.engine import get_engine

SessionScope = Callable[[], AbstractContextManager[Session]]


def make_session_scope(engine: Engine) -> SessionScope:
    """Build a transactional ``session_scope`` bound to ``engine``.

    The scope commits on a clean exit, rolls back on any exception and
    always closes the session. Objects stay readable after commit.
    """
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)

    @contextmanager
    def _scope() -> Iterator[Session]:
        session: Session = factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return _scope


@lru_cache(maxsize=1)
def _default_scope() -> SessionScope:
    # the settings engine is built on first use, not at import
    return make_session_scope(get_engine())


@contextmanager
def session_scope() -> Iterator[Session]:
    with _default_scope()() as session:
        yield session
