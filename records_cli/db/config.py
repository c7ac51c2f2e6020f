import os
from typing import Optional

import click
from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from records_cli.models import Base
from records_cli.utils.logging_config import get_logger

load_dotenv()

RECORDS_DATABASE_URL = os.getenv("RECORDS_DATABASE_URL")
RECORDS_LOCAL_DB = os.getenv("RECORDS_LOCAL_DB", "sqlite:///local.db")


TIMEOUT_SECONDS = 120

logger = get_logger(__name__)


def _register_error_logging(engine: Engine) -> None:
    """Log every backend error before it propagates to the caller."""

    @event.listens_for(engine, "handle_error")
    def _log_backend_error(exc_ctx):
        err = getattr(exc_ctx, "original_exception", None)
        logger.error(f"Database error on {engine.url.render_as_string()}: {err}")


def create_engine_for_url(url: str) -> Engine:
    """Create an engine for ``url``, sharing one connection for in-memory SQLite."""
    if url.startswith("sqlite"):
        in_memory = url in ("sqlite://", "sqlite:///:memory:")
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": TIMEOUT_SECONDS},
            echo=False,
            pool_pre_ping=True,
            poolclass=StaticPool if in_memory else NullPool,
        )
    else:
        engine = create_engine(
            url,
            echo=False,
            pool_pre_ping=True,
            poolclass=NullPool,
        )
    _register_error_logging(engine)
    return engine


def get_engine(use_local: bool = True, url: Optional[str] = None) -> Engine:
    if url:
        return create_engine_for_url(url)
    if use_local:
        logger.info(f"Using local database {RECORDS_LOCAL_DB}")
        return create_engine_for_url(RECORDS_LOCAL_DB)

    click.secho("⚠️ Using production database.", fg="yellow")
    if not RECORDS_DATABASE_URL:
        raise ValueError("RECORDS_DATABASE_URL missing")
    return create_engine_for_url(RECORDS_DATABASE_URL)


def get_session_factory(engine: Engine) -> sessionmaker:
    # Objects are handed to callers after the session closes.
    return sessionmaker(
        bind=engine, autoflush=False, expire_on_commit=False
    )


def init_db(engine: Engine) -> None:
    Base.metadata.create_all(engine)
