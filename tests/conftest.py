import os
import uuid
from types import SimpleNamespace

# До импорта приложения: движок создается при импорте branch_logistics.db.session
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from branch_logistics.db.base_class import Base
from branch_logistics.models.branch import Branch
from branch_logistics.models.enums import BranchKind, ItemStatus, ServiceRequestStatus
from branch_logistics.models.inventory import WarehouseMachine, WarehouseSim
from branch_logistics.models.outbox import OutboxEvent
from branch_logistics.models.service_request import MaintenanceRequest
from branch_logistics.models.transfer import TransferOrder, TransferOrderItem
from branch_logistics.schemas.user import ActingUser


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seed(session_factory):
    """
    Филиалы A и B (обычные), C (сервисный центр), D (неактивный), E (административный).
    Машины SN-001, SN-002 на A; SN-003 продана; SN-010 на B; SN-DEF неисправна и с заявкой.
    """
    ids = SimpleNamespace(
        a=uuid.uuid4(), b=uuid.uuid4(), c=uuid.uuid4(), d=uuid.uuid4(), e=uuid.uuid4(),
    )
    async with session_factory() as session:
        async with session.begin():
            session.add_all([
                Branch(id=ids.a, name="Branch A", kind=BranchKind.ORDINARY),
                Branch(id=ids.b, name="Branch B", kind=BranchKind.ORDINARY),
                Branch(id=ids.c, name="Service Center", kind=BranchKind.MAINTENANCE_CENTER),
                Branch(id=ids.d, name="Closed Branch", kind=BranchKind.ORDINARY, is_active=False),
                Branch(id=ids.e, name="Admin Affairs", kind=BranchKind.ADMIN_AFFAIRS),
            ])
            await session.flush()
            session.add_all([
                WarehouseMachine(serial_number="SN-001", branch_id=ids.a, status=ItemStatus.NEW,
                                 model="A920", manufacturer="PAX"),
                WarehouseMachine(serial_number="SN-002", branch_id=ids.a, status=ItemStatus.STANDBY,
                                 model="S90", manufacturer="PAX"),
                WarehouseMachine(serial_number="SN-003", branch_id=ids.a, status=ItemStatus.SOLD,
                                 model="S90", manufacturer="PAX"),
                WarehouseMachine(serial_number="SN-010", branch_id=ids.b, status=ItemStatus.NEW,
                                 model="V240m", manufacturer="Verifone"),
                WarehouseMachine(serial_number="SN-DEF", branch_id=ids.a, status=ItemStatus.DEFECTIVE,
                                 model="A920", manufacturer="PAX", customer_id="CUST-7"),
                WarehouseSim(serial_number="SIM-001", branch_id=ids.a, status=ItemStatus.NEW, sim_type="Vodafone"),
                MaintenanceRequest(serial_number="SN-DEF", branch_id=ids.a,
                                   status=ServiceRequestStatus.OPEN, customer_id="CUST-7"),
            ])
    return ids


@pytest.fixture
def users(seed):
    return SimpleNamespace(
        a=ActingUser(id="user-a", display_name="Clerk A", role="BRANCH_MANAGER", branch_id=seed.a),
        a2=ActingUser(id="user-a2", display_name="Second Clerk A", role="BRANCH_MANAGER", branch_id=seed.a),
        b=ActingUser(id="user-b", display_name="Clerk B", role="BRANCH_MANAGER", branch_id=seed.b),
        c=ActingUser(id="user-c", display_name="Technician", role="TECHNICIAN", branch_id=seed.c),
        admin=ActingUser(id="admin", display_name="Super Admin", role="SUPER_ADMIN"),
        affairs=ActingUser(id="affairs", display_name="Admin Affairs", role="ADMIN_AFFAIRS", branch_id=seed.e,
                           authorized_branch_ids=[seed.a, seed.b]),
    )


class Store:
    """Читает состояние базы отдельной сессией, не задевая сессию сервиса."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def _scalar(self, stmt):
        async with self.session_factory() as session:
            return await session.scalar(stmt)

    async def _all(self, stmt):
        async with self.session_factory() as session:
            return list((await session.execute(stmt)).all())

    async def machine(self, serial: str):
        row = await self._all(
            select(WarehouseMachine.branch_id, WarehouseMachine.status, WarehouseMachine.origin_branch_id,
                   WarehouseMachine.customer_id)
            .where(WarehouseMachine.serial_number == serial)
        )
        return row[0] if row else None

    async def sim(self, serial: str):
        row = await self._all(
            select(WarehouseSim.branch_id, WarehouseSim.status).where(WarehouseSim.serial_number == serial)
        )
        return row[0] if row else None

    async def request_status(self, serial: str):
        return await self._scalar(select(MaintenanceRequest.status).where(MaintenanceRequest.serial_number == serial))

    async def request_id(self, serial: str):
        return await self._scalar(select(MaintenanceRequest.id).where(MaintenanceRequest.serial_number == serial))

    async def machine_request_id(self, serial: str):
        return await self._scalar(select(WarehouseMachine.request_id).where(WarehouseMachine.serial_number == serial))

    async def request(self, serial: str):
        row = await self._all(
            select(MaintenanceRequest.status, MaintenanceRequest.serviced_by_branch_id)
            .where(MaintenanceRequest.serial_number == serial)
        )
        return row[0] if row else None

    async def order_status(self, order_id):
        return await self._scalar(select(TransferOrder.status).where(TransferOrder.id == order_id))

    async def order_count(self) -> int:
        return len(await self._all(select(TransferOrder.id)))

    async def order_item_count(self) -> int:
        return len(await self._all(select(TransferOrderItem.id)))

    async def item_statuses(self, order_id) -> dict:
        rows = await self._all(
            select(TransferOrderItem.serial_number, TransferOrderItem.status, TransferOrderItem.is_received)
            .where(TransferOrderItem.order_id == order_id)
        )
        return {r.serial_number: (r.status, r.is_received) for r in rows}

    async def outbox(self) -> list:
        rows = await self._all(
            select(OutboxEvent.event_type, OutboxEvent.target_branch_id, OutboxEvent.status)
            .order_by(OutboxEvent.created_at)
        )
        return [tuple(r) for r in rows]


@pytest.fixture
def store(session_factory, seed):
    return Store(session_factory)
