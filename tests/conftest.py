from collections.abc import AsyncGenerator
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.core.database.base import Base
from src.core.database import get_db
from src.main import app
from src.modules.encounters.models import Appointment, AppointmentStatus, Encounter, PatientBook
from src.modules.invoices.models import BuyerType, Invoice, InvoiceItem, InvoiceItemType

# Test database URL (in-memory SQLite for speed, or use test PostgreSQL)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database with all tables for each test."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_session(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Get test database session."""
    session_factory = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Get test HTTP client with overridden database dependency."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def invoice_factory(db_session: AsyncSession):
    """
    Create a committed invoice for one encounter.

    products is a list of (product_id, quantity) PRODUCT lines; a SERVICE line
    is always added. Returns a dict of plain ids so tests can keep using them
    after a settlement rolled the session back.
    """
    counter = {"n": 0}

    async def _create(
        base_amount: Decimal = Decimal("100000.00"),
        final_amount: Decimal | None = None,
        total_amount: Decimal | None = None,
        appointment_status: str | None = AppointmentStatus.READY_TO_PAY.value,
        branch_id: int | None = 1,
        appointment_branch_id: int | None = None,
        buyer_type: str = BuyerType.B2C.value,
        buyer_tin: str | None = None,
        products: list[tuple[int, int]] | None = None,
    ) -> dict:
        counter["n"] += 1
        book = PatientBook(patient_id=700 + counter["n"], book_number=f"PB-{counter['n']:04d}")
        db_session.add(book)
        await db_session.flush()

        appointment = None
        if appointment_status is not None:
            appointment = Appointment(
                branch_id=appointment_branch_id,
                patient_id=book.patient_id,
                status=appointment_status,
            )
            db_session.add(appointment)
            await db_session.flush()

        encounter = Encounter(
            patient_book_id=book.id,
            appointment_id=appointment.id if appointment else None,
        )
        db_session.add(encounter)
        await db_session.flush()

        if final_amount is None and total_amount is None:
            final_amount = base_amount
        invoice = Invoice(
            branch_id=branch_id,
            encounter_id=encounter.id,
            patient_id=book.patient_id,
            buyer_type=buyer_type,
            buyer_tin=buyer_tin,
            total_before_discount=base_amount,
            discount_percent=0,
            final_amount=final_amount,
            total_amount=total_amount,
        )
        db_session.add(invoice)
        await db_session.flush()

        items = [
            InvoiceItem(
                invoice_id=invoice.id,
                item_type=InvoiceItemType.SERVICE.value,
                service_id=10,
                name="Filling",
                unit_price=Decimal("50000.00"),
                quantity=1,
                line_total=Decimal("50000.00"),
            )
        ]
        for product_id, quantity in products if products is not None else [(501, 2)]:
            items.append(
                InvoiceItem(
                    invoice_id=invoice.id,
                    item_type=InvoiceItemType.PRODUCT.value,
                    product_id=product_id,
                    name=f"Product {product_id}",
                    unit_price=Decimal("10000.00"),
                    quantity=quantity,
                    line_total=Decimal("10000.00") * quantity,
                )
            )
        db_session.add_all(items)
        await db_session.commit()

        return {
            "invoice_id": invoice.id,
            "encounter_id": encounter.id,
            "appointment_id": appointment.id if appointment else None,
            "patient_book_number": book.book_number,
            "item_ids": [item.id for item in items],
            "product_item_ids": [
                item.id for item in items if item.item_type == InvoiceItemType.PRODUCT.value
            ],
        }

    return _create
