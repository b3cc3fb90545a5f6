"""
Ledgerbook - Test Configuration

Pytest fixtures and configuration.
"""

from typing import AsyncGenerator, List
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

import ledgerbook.models  # noqa: F401
from ledgerbook.database import Base, get_async_session
from ledgerbook.models.ledger import AccountOwner, Commodity, Ledger
from ledgerbook.schemas.chart_of_accounts import ChartAccountRow
from ledgerbook.services.chart_import_service import ChartImportService
from ledgerbook.services.ledger_store import SQLAlchemyLedgerStore
from main import app
from tests.fixtures.chart_rows import make_row


# In-memory SQLite shared by every session of a test
TEST_DATABASE_URL = "sqlite+aiosqlite://"

# Create test engine
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    poolclass=StaticPool,
    connect_args={"check_same_thread": False},
)

# Create test session factory
TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database session override."""

    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def store(db_session: AsyncSession) -> SQLAlchemyLedgerStore:
    return SQLAlchemyLedgerStore(db_session)


@pytest.fixture
def importer(store: SQLAlchemyLedgerStore) -> ChartImportService:
    return ChartImportService(store)


# ===========================================
# DATA FIXTURES
# ===========================================

@pytest_asyncio.fixture
async def test_owner(db_session: AsyncSession) -> AccountOwner:
    """Create a test account owner."""
    owner = AccountOwner(id=uuid4(), display_name="Test Owner", is_active=True)
    db_session.add(owner)
    await db_session.commit()
    return owner


@pytest_asyncio.fixture
async def test_commodity(db_session: AsyncSession) -> Commodity:
    """Create a USD currency commodity."""
    commodity = Commodity(
        id=uuid4(),
        namespace="CURRENCY",
        mnemonic="USD",
        full_name="US Dollar",
        fraction=100,
        is_active=True,
    )
    db_session.add(commodity)
    await db_session.commit()
    return commodity


@pytest_asyncio.fixture
async def test_ledger(
    db_session: AsyncSession,
    test_owner: AccountOwner,
    test_commodity: Commodity,
) -> Ledger:
    """Create an empty ledger with no accounts and no root."""
    ledger = Ledger(
        id=uuid4(),
        name="Household",
        currency_code="USD",
        precision=2,
        is_active=True,
        owner_id=test_owner.id,
        currency_commodity_id=test_commodity.id,
    )
    db_session.add(ledger)
    await db_session.commit()
    return ledger


@pytest.fixture
def scenario_a_rows() -> List[ChartAccountRow]:
    """Root "1" with "1000" below it and "1100" below "1000"."""
    return [
        make_row("1", level=0),
        make_row("1000", parent="1", level=1, kind=1, role=1),
        make_row("1100", parent="1000", level=2, kind=1, role=2),
    ]


@pytest_asyncio.fixture
async def imported_ledger(
    importer: ChartImportService,
    test_ledger: Ledger,
    scenario_a_rows: List[ChartAccountRow],
) -> Ledger:
    """The test ledger after importing the scenario A rows."""
    await importer.import_rows(test_ledger, scenario_a_rows)
    return test_ledger


async def accounts_by_code(store: SQLAlchemyLedgerStore, ledger: Ledger) -> dict:
    """Map code -> Account for a ledger."""
    return {a.code: a for a in await store.find_accounts_by_ledger(ledger.id)}


@pytest.fixture
def by_code():
    return accounts_by_code
