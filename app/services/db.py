from __future__ import annotations

from contextlib import AbstractContextManager, contextmanager
from functools import lru_cache
from pathlib import Path
from typing import Callable, Generator

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import get_settings
from app.models import issue as _issue_models  # noqa: F401
from app.models import user as _user_models  # noqa: F401
from app.models.base import Base

SessionScope = Callable[[], AbstractContextManager[Session]]


def build_engine(database_url: str, **kwargs) -> Engine:
    url = make_url(database_url)
    if url.drivername.startswith("sqlite") and url.database and url.database != ":memory:":
        db_path = Path(url.database).expanduser()
        if db_path.parent:
            db_path.parent.mkdir(parents=True, exist_ok=True)
        # Rebuild URL so SQLAlchemy can handle relative paths nicely
        database_url = f"sqlite:///{db_path}"

    if url.drivername.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    return create_engine(database_url, echo=False, **kwargs)


def make_session_scope(engine: Engine) -> SessionScope:
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)

    @contextmanager
    def scope() -> Generator[Session, None, None]:
        session: Session = factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return scope


@lru_cache
def get_engine() -> Engine:
    return build_engine(get_settings().database_url)


def init_db(engine: Engine | None = None) -> None:
    Base.metadata.create_all(bind=engine or get_engine())


@lru_cache
def get_session_scope() -> SessionScope:
    return make_session_scope(get_engine())

