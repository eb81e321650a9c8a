"""SQLAlchemy plumbing shared by the SQL adapters.

All tables of the storefront live on one ``DeclarativeBase``. The engine is
built from ``settings.DATABASE_URL`` by default, but every SQL repository
accepts an explicit engine so tests can run against in-memory SQLite.
"""

from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session
from sqlalchemy.pool import StaticPool

from storefront import settings


class Base(DeclarativeBase):
    pass


def make_engine(url: Optional[str] = None, echo: Optional[bool] = None) -> Engine:
    """Create an engine for ``url`` (defaults to ``settings.DATABASE_URL``).

    ``sqlite://`` in-memory URLs get a ``StaticPool`` so every session and
    thread sees the same database.

    Args:
        url: SQLAlchemy database URL.
        echo: Log SQL statements; defaults to ``settings.DB_ECHO``.

    Returns:
        Engine: Configured SQLAlchemy engine.
    """
    url = url or settings.DATABASE_URL
    echo = settings.DB_ECHO if echo is None else echo
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=echo, **kwargs)
    return create_engine(url, echo=echo, pool_pre_ping=True)


def init_db(engine: Engine) -> None:
    """Create every storefront table that does not exist yet."""
    # Model modules register their tables on Base when imported.
    from storefront.apps.cart import repository as _cart  # noqa: F401
    from storefront.apps.catalog import repository as _catalog  # noqa: F401
    from storefront.apps.orders import repository as _orders  # noqa: F401
    from storefront.apps.stock import repository as _stock  # noqa: F401

    Base.metadata.create_all(engine)


@contextmanager
def get_session(engine: Engine) -> Iterator[Session]:
    """Yield a session bound to ``engine``; closed on exit.

    Args:
        engine: Engine to bind the session to.

    Yields:
        Session: Active SQLAlchemy session.
    """
    with Session(engine) as s:
        yield s
