# tests/conftest.py
import importlib
import os
import sys
from pathlib import Path

# --- Part 1: Path Setup ---
# Must run first so the flat top-level packages (db, services, ...) import.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


# --- Part 2: Environment Loading ---
# Before any application import: db.session builds its engine at import time.
TEST_DATABASE_URL = os.getenv("DATABASE_URL_TEST", "sqlite+aiosqlite:///:memory:")
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ.setdefault("CONFIG_PATH", str(REPO_ROOT / "config.yaml"))

from dotenv import load_dotenv
load_dotenv(REPO_ROOT / ".env.local")
load_dotenv(REPO_ROOT / ".env")


# --- Part 3: Application Imports ---
from db.models import Base, Team
from common.models import PriceVariation
from constants.types import AccessType, SoilType, TeamStatus


# --- Part 4: Test Library Imports ---
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, StaticPool

# Every module that opens `Session()` on its own.
SERVICE_MODULES = (
    "services.catalog_service",
    "services.schedule_service",
    "services.travel_service",
    "services.job_service",
    "services.budget_service",
)


# --- Part 5: Core Test Fixtures ---
@pytest_asyncio.fixture(scope="function")
async def db_sessionmaker(monkeypatch):
    """
    A fresh schema per test, and every service module bound to it.

    In-memory sqlite lives on a single connection (StaticPool) so all sessions
    of the test see the same database; any other URL gets no pooled reuse.
    """
    in_memory = ":memory:" in TEST_DATABASE_URL
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=(StaticPool if in_memory else NullPool),
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    maker = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    for name in SERVICE_MODULES:
        monkeypatch.setattr(importlib.import_module(name), "Session", maker, raising=True)

    yield maker

    await engine.dispose()


@pytest_asyncio.fixture
async def team(db_sessionmaker) -> Team:
    async with db_sessionmaker() as db:
        t = Team(name="Equipe Alfa", status=TeamStatus.ativa, leader="Carlos")
        db.add(t)
        await db.commit()
        await db.refresh(t)
        return t


@pytest_asyncio.fixture
async def other_team(db_sessionmaker) -> Team:
    async with db_sessionmaker() as db:
        t = Team(name="Equipe Beta", status=TeamStatus.ativa)
        db.add(t)
        await db.commit()
        await db.refresh(t)
        return t


# price in R$/m, execution_time in min/m
CATALOG_VARIATIONS = [
    PriceVariation(30, SoilType.argiloso, AccessType.livre, 50.0, 3.0),
    PriceVariation(30, SoilType.arenoso, AccessType.livre, 40.0, 2.0),
    PriceVariation(35, SoilType.argiloso, AccessType.livre, 60.0, 3.5),
    PriceVariation(25, SoilType.rochoso, AccessType.restrito, 90.0, 6.0),
]


@pytest_asyncio.fixture
async def catalog_item(db_sessionmaker):
    from services.catalog_service import create_catalog_item

    return await create_catalog_item(
        name="Estaca escavada",
        category="fundação",
        variations=CATALOG_VARIATIONS,
    )


@pytest.fixture
def catalog_variations():
    return list(CATALOG_VARIATIONS)
