# db/session.py
from __future__ import annotations

import logging
import os
import pathlib
import ssl as _ssl
from typing import Any, Iterable

from dotenv import load_dotenv
from sqlalchemy import text
from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

_log = logging.getLogger("drillops")


def _load_env_files(candidates: Iterable[str]) -> None:
    """
    Load env files from both CWD and project root (relative to this file),
    without overriding values already provided by the platform.
    """
    here = pathlib.Path(__file__).resolve()
    roots = {
        pathlib.Path.cwd(),
        here.parent.parent,
    }
    for fname in candidates:
        for root in roots:
            p = root / fname
            if p.exists():
                load_dotenv(p, override=False)


_load_env_files((".env.local", "env.local", ".env"))

# Default to sqlite+aiosqlite so local runs and tests need no server.
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./drillops.db")
_url = make_url(DATABASE_URL)
_log.info("DATABASE_URL set: %s", _url.render_as_string(hide_password=True))


def _ssl_arg() -> Any:
    """asyncpg `ssl` connect arg from DB_SSLMODE (disable | require | verify-ca | verify-full)."""
    sslmode = os.getenv("DB_SSLMODE", "disable").lower()
    if sslmode in ("require",):
        return True  # encrypted, no verification
    if sslmode in ("verify-ca", "verify-full"):
        ctx = _ssl.create_default_context(cafile=os.getenv("DB_SSLROOTCERT"))
        ctx.check_hostname = sslmode == "verify-full"
        return ctx
    return False


_connect_args = {"ssl": _ssl_arg()} if _url.drivername == "postgresql+asyncpg" else {}

engine = create_async_engine(
    DATABASE_URL,
    pool_pre_ping=True,
    echo=bool(os.getenv("SQL_ECHO")),
    connect_args=_connect_args,
)

Session = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def ping() -> bool:
    """Optional: simple connectivity check you can call at startup."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
