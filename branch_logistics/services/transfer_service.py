import datetime as dt
import logging
from contextlib import asynccontextmanager
from typing import Any
from uuid import UUID

from sqlalchemy import and_, exists, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from branch_logistics.core.config import settings
from branch_logistics.core.errors import (
    ForbiddenError,
    InternalError,
    InvalidStateTransition,
    NotFoundError,
    TransferError,
    ValidationError,
)
from branch_logistics.core.logging import bind_actor
from branch_logistics.core.observability import log_step
from branch_logistics.models.enums import (
    OPEN_TRANSFER_STATUSES,
    ItemStatus,
    TransferItemStatus,
    TransferKind,
    TransferStatus,
)
from branch_logistics.models.transfer import TransferOrder, TransferOrderItem
from branch_logistics.schemas.notification import NotificationEvent
from branch_logistics.schemas.transfer import (
    CancelConfirmation,
    ItemCounts,
    OrderCounts,
    TransferOrderFilter,
    TransferOrderIntent,
    TransferStats,
    ValidationIssue,
    ValidationResult,
)
from branch_logistics.schemas.user import ActingUser
from branch_logistics.services import authorization, inventory_registry, service_requests
from branch_logistics.services import notification_service as events
from branch_logistics.services.notification_service import NotificationTrigger
from branch_logistics.services.order_numbers import (
    DuplicateOrderNumber,
    is_order_number_collision,
    next_order_number,
)
from branch_logistics.services.transfer_state import ensure_transition, sources_for
from branch_logistics.services.transfer_validator import TransferValidator, source_branch_id

logger = logging.getLogger(__name__)


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class TransferService:
    """
    Движок заказов на перемещение.

    Каждая изменяющая операция выполняется одной транзакцией: заказ, его
    позиции, складские реестры и заявки на обслуживание меняются вместе или
    не меняются вовсе. Конкурентные приемка/отклонение/отмена одного заказа
    упорядочиваются условным UPDATE по статусу: побеждает ровно один вызов,
    остальные получают InvalidStateTransition. Уведомления уходят только
    после commit и на результат операции не влияют.
    """

    def __init__(self, session: AsyncSession, notifier: NotificationTrigger | None = None):
        self.session = session
        self.notifier = notifier

    # ---------------------------------------------------------------- create

    @log_step("transfers.validate")
    async def validate_transfer_order(self, intent: TransferOrderIntent, user: ActingUser) -> ValidationResult:
        """Dry run of the creation checks; nothing is written."""
        bind_actor(user.id, user.branch_id)
        async with self._transaction("validate"):
            return await TransferValidator(self.session).validate(intent, user)

    @log_step("transfers.create")
    async def create_transfer_order(
        self, intent: TransferOrderIntent, user: ActingUser, *, today: dt.date | None = None
    ) -> TransferOrder:
        bind_actor(user.id, user.branch_id)
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(DuplicateOrderNumber),
            stop=stop_after_attempt(settings.ORDER_NUMBER_RETRIES),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    order = await self._create_once(intent, user, today)
        except DuplicateOrderNumber as e:
            logger.error("Could not allocate a unique order number", exc_info=True)
            raise InternalError("create") from e

        await self._notify([NotificationEvent(
            target_branch_id=order.to_branch_id,
            event_type=events.TRANSFER_ORDER_CREATED,
            payload=self._payload(order, item_count=len(order.items)),
        )])
        return order

    async def _create_once(self, intent: TransferOrderIntent, user: ActingUser, today: dt.date | None) -> TransferOrder:
        async with self._transaction("create"):
            # Проверка позиций в той же транзакции, что и вставка заказа
            result = await TransferValidator(self.session).validate(intent, user)
            if not result.valid:
                raise ValidationError(result.errors, result.warnings)

            from_branch_id = source_branch_id(intent, user)
            serials = intent.serial_numbers
            notes_by_serial = {i.serial_number.strip(): i.notes for i in intent.items}
            registry_items = await inventory_registry.fetch_items(self.session, intent.kind, serials)

            order_number = await next_order_number(self.session, today)
            order = TransferOrder(
                order_number=order_number,
                from_branch_id=from_branch_id,
                to_branch_id=intent.to_branch_id,
                kind=intent.kind,
                status=TransferStatus.PENDING,
                created_by_user_id=user.id,
                created_by_name=user.display_name,
                notes=intent.notes,
                waybill_number=intent.waybill_number,
                items=[
                    TransferOrderItem(
                        serial_number=serial,
                        kind=intent.kind,
                        model=registry_items[serial].descriptive_fields[0],
                        manufacturer=registry_items[serial].descriptive_fields[1],
                        notes=notes_by_serial.get(serial),
                        is_received=False,
                        status=TransferItemStatus.PENDING,
                    )
                    for serial in serials
                ],
            )
            self.session.add(order)
            try:
                await self.session.flush()
            except IntegrityError as e:
                if is_order_number_collision(e):
                    raise DuplicateOrderNumber(order_number) from e
                raise

            claimed = await inventory_registry.claim_items(self.session, intent.kind, serials, from_branch_id)
            lost = [s for s in serials if s not in claimed]
            if lost:
                # Конкурентный заказ забрал позицию между проверкой и UPDATE
                raise ValidationError([
                    ValidationIssue(
                        code="ITEM_PENDING_TRANSFER",
                        message=f"{serial} is already in a pending transfer",
                        serial_number=serial,
                    )
                    for serial in lost
                ])

            if intent.kind == TransferKind.MAINTENANCE:
                held = await service_requests.hold_for_transfer(self.session, serials, from_branch_id)
                await inventory_registry.link_requests(self.session, held, from_branch_id)

            order = await self._load_order(order.id)

        logger.info("Transfer order created", extra={"extra": {
            "order_number": order.order_number, "kind": order.kind.value, "items": len(order.items),
            "from_branch_id": str(order.from_branch_id), "to_branch_id": str(order.to_branch_id),
            "warnings": [w.message for w in result.warnings]}})
        return order

    # --------------------------------------------------------------- receive

    @log_step("transfers.receive")
    async def receive_transfer_order(
        self, order_id: UUID, received_item_ids: list[UUID] | None, user: ActingUser
    ) -> TransferOrder:
        bind_actor(user.id, user.branch_id)
        async with self._transaction("receive", order_id):
            await self._get_scoped(order_id, user)

            guard_from = sources_for(TransferStatus.PARTIAL, TransferStatus.RECEIVED)
            if not await self._guard(order_id, guard_from, received_by=user.id, received_by_name=user.display_name):
                raise InvalidStateTransition(await self._current_status(order_id), TransferStatus.RECEIVED)

            # Строка заказа заблокирована guard-ом: перечитываем актуальное состояние
            order = await self._load_order(order_id)
            target_ids = self._items_to_receive(order, received_item_ids)
            now = _utcnow()
            marked = await self._mark_items(order_id, target_ids, TransferItemStatus.RECEIVED, now)
            if not marked:
                raise ValidationError([ValidationIssue(
                    code="NOTHING_TO_RECEIVE", message="All requested items are already received")])

            remaining = await self.session.scalar(
                select(func.count(TransferOrderItem.id)).where(
                    TransferOrderItem.order_id == order_id,
                    TransferOrderItem.is_received.is_(False),
                )
            )
            new_status = TransferStatus.RECEIVED if remaining == 0 else TransferStatus.PARTIAL
            ensure_transition(order.status, new_status)
            await self.session.execute(
                update(TransferOrder)
                .where(TransferOrder.id == order_id)
                .values(status=new_status, received_at=now)
                .execution_options(synchronize_session=False)
            )

            order = await self._load_order(order_id)
            for order_item in order.items:
                if order_item.id not in marked:
                    continue
                await inventory_registry.place_received_item(self.session, order, order_item)
                if order.kind == TransferKind.MAINTENANCE and order.to_branch.is_maintenance_center:
                    await service_requests.hand_over_to_center(
                        self.session, order_item.serial_number, order.from_branch_id, order.to_branch_id
                    )
            await self.session.flush()

        event_type = (
            events.TRANSFER_ORDER_RECEIVED if order.status == TransferStatus.RECEIVED
            else events.TRANSFER_ORDER_PARTIALLY_RECEIVED
        )
        await self._notify([NotificationEvent(
            target_branch_id=order.from_branch_id,
            event_type=event_type,
            payload=self._payload(order, received_count=len(marked), remaining_count=remaining),
        )])
        return order

    @staticmethod
    def _items_to_receive(order: TransferOrder, received_item_ids: list[UUID] | None) -> list[UUID]:
        pending_ids = [i.id for i in order.items if not i.is_received]
        if received_item_ids is None:
            return pending_ids
        known = {i.id for i in order.items}
        unknown = [item_id for item_id in received_item_ids if item_id not in known]
        if unknown:
            raise ValidationError([
                ValidationIssue(code="UNKNOWN_ITEM", message=f"Item {item_id} is not part of order {order.order_number}")
                for item_id in unknown
            ])
        pending = set(pending_ids)
        return [item_id for item_id in dict.fromkeys(received_item_ids) if item_id in pending]

    # ---------------------------------------------------------------- reject

    @log_step("transfers.reject")
    async def reject_order(self, order_id: UUID, reason: str, user: ActingUser) -> TransferOrder:
        bind_actor(user.id, user.branch_id)
        reason = (reason or "").strip()

        async with self._transaction("reject", order_id):
            await self._get_scoped(order_id, user)
            if len(reason) < settings.MIN_REJECTION_REASON_LENGTH:
                raise ValidationError([ValidationIssue(
                    code="REJECTION_REASON_REQUIRED",
                    message=f"Rejection reason must be at least {settings.MIN_REJECTION_REASON_LENGTH} characters",
                )])
            # PARTIAL целиком не отклоняется: часть позиций уже оприходована получателем
            if not await self._guard(
                order_id,
                sources_for(TransferStatus.REJECTED),
                status=TransferStatus.REJECTED,
                rejection_reason=reason,
                received_by=user.id,
                received_by_name=user.display_name,
                received_at=_utcnow(),
            ):
                raise InvalidStateTransition(await self._current_status(order_id), TransferStatus.REJECTED)

            order = await self._load_order(order_id)
            await self._restore_items(order)
            await self._mark_items(order_id, [i.id for i in order.items], TransferItemStatus.REJECTED)
            order = await self._load_order(order_id)

        await self._notify([NotificationEvent(
            target_branch_id=order.from_branch_id,
            event_type=events.TRANSFER_ORDER_REJECTED,
            payload=self._payload(order, rejection_reason=reason),
        )])
        return order

    # ---------------------------------------------------------------- cancel

    @log_step("transfers.cancel")
    async def cancel_order(self, order_id: UUID, user: ActingUser) -> CancelConfirmation:
        bind_actor(user.id, user.branch_id)
        async with self._transaction("cancel", order_id):
            order = await self._get_scoped(order_id, user)
            if not authorization.can_act(user, order):
                raise ForbiddenError("Only the creator of the order or an administrator can cancel it")

            if not await self._guard(
                order_id,
                sources_for(TransferStatus.CANCELLED),
                status=TransferStatus.CANCELLED,
                received_by=user.id,
                received_by_name=user.display_name,
            ):
                raise InvalidStateTransition(await self._current_status(order_id), TransferStatus.CANCELLED)

            order = await self._load_order(order_id)
            await self._restore_items(order)
            await self._mark_items(order_id, [i.id for i in order.items], TransferItemStatus.CANCELLED)
            order = await self._load_order(order_id)

        await self._notify([NotificationEvent(
            target_branch_id=order.to_branch_id,
            event_type=events.TRANSFER_ORDER_CANCELLED,
            payload=self._payload(order),
        )])
        return CancelConfirmation(order_id=order.id, order_number=order.order_number, status=order.status)

    async def _restore_items(self, order: TransferOrder) -> None:
        """Позиции возвращаются в филиал-источник; неисправные из сервисного заказа - как DEFECTIVE."""
        serials = [i.serial_number for i in order.items]
        restored = ItemStatus.DEFECTIVE if order.kind == TransferKind.MAINTENANCE else ItemStatus.NEW
        await inventory_registry.restore_items(self.session, order.kind, serials, order.from_branch_id, restored)
        if order.kind == TransferKind.MAINTENANCE:
            await service_requests.release_from_transfer(self.session, serials, order.from_branch_id)

    # ----------------------------------------------------------------- reads

    @log_step("transfers.get")
    async def get_order(self, order_id: UUID, user: ActingUser) -> TransferOrder:
        async with self._transaction("get", order_id):
            return await self._get_scoped(order_id, user)

    @log_step("transfers.list")
    async def list_orders(self, filters: TransferOrderFilter, user: ActingUser) -> list[TransferOrder]:
        stmt = (
            select(TransferOrder)
            .where(*self._filter_clauses(filters, user))
            .order_by(TransferOrder.created_at.desc(), TransferOrder.order_number.desc())
            .offset(filters.offset)
            .limit(filters.limit)
        )
        async with self._transaction("list"):
            result = await self.session.execute(stmt)
            return list(result.scalars().all())

    async def list_pending_orders(self, filters: TransferOrderFilter, user: ActingUser) -> list[TransferOrder]:
        return await self.list_orders(filters.model_copy(update={"status": TransferStatus.PENDING}), user)

    @log_step("transfers.pending_serials")
    async def get_pending_serials(self, filters: TransferOrderFilter, user: ActingUser) -> list[str]:
        """Serial numbers currently frozen by open orders the user can see."""
        clauses = self._filter_clauses(filters.model_copy(update={"status": None}), user)
        stmt = (
            select(TransferOrderItem.serial_number)
            .join(TransferOrder, TransferOrderItem.order_id == TransferOrder.id)
            .where(
                *clauses,
                TransferOrder.status.in_(list(OPEN_TRANSFER_STATUSES)),
                TransferOrderItem.is_received.is_(False),
            )
            .order_by(TransferOrderItem.serial_number)
        )
        async with self._transaction("pending_serials"):
            result = await self.session.execute(stmt)
            return list(result.scalars().all())

    @log_step("transfers.stats")
    async def get_stats_summary(self, filters: TransferOrderFilter, user: ActingUser) -> TransferStats:
        clauses = self._filter_clauses(filters.model_copy(update={"status": None, "q": None}), user)
        async with self._transaction("stats"):
            by_status = await self.session.execute(
                select(TransferOrder.status, func.count(TransferOrder.id))
                .where(*clauses)
                .group_by(TransferOrder.status)
            )
            by_received = await self.session.execute(
                select(TransferOrderItem.is_received, func.count(TransferOrderItem.id))
                .join(TransferOrder, TransferOrderItem.order_id == TransferOrder.id)
                .where(*clauses)
                .group_by(TransferOrderItem.is_received)
            )
            status_counts = {status: count for status, count in by_status.all()}
            received_counts = {bool(flag): count for flag, count in by_received.all()}

        orders = OrderCounts(
            total=sum(status_counts.values()),
            **{status.value.lower(): status_counts.get(status, 0) for status in TransferStatus},
        )
        items = ItemCounts(
            total=sum(received_counts.values()),
            received=received_counts.get(True, 0),
            pending=received_counts.get(False, 0),
        )
        return TransferStats(orders=orders, items=items)

    def _filter_clauses(self, filters: TransferOrderFilter, user: ActingUser) -> list:
        clauses = [authorization.scope(user)]
        if filters.branch_id is not None and authorization.is_global(user):
            clauses.append(or_(
                TransferOrder.from_branch_id == filters.branch_id,
                TransferOrder.to_branch_id == filters.branch_id,
            ))
        if filters.status is not None:
            clauses.append(TransferOrder.status == filters.status)
        if filters.kind is not None:
            clauses.append(TransferOrder.kind == filters.kind)
        if filters.from_date is not None:
            clauses.append(TransferOrder.created_at >= filters.from_date)
        if filters.to_date is not None:
            clauses.append(TransferOrder.created_at <= filters.to_date)
        if filters.q:
            pattern = f"%{filters.q.strip()}%"
            clauses.append(or_(
                TransferOrder.order_number.ilike(pattern),
                exists().where(and_(
                    TransferOrderItem.order_id == TransferOrder.id,
                    TransferOrderItem.serial_number.ilike(pattern),
                )),
            ))
        return clauses

    # --------------------------------------------------------------- helpers

    @asynccontextmanager
    async def _transaction(self, operation: str, order_id: UUID | None = None):
        try:
            async with self.session.begin():
                yield
        except TransferError:
            raise
        except SQLAlchemyError as e:
            logger.error("Transaction rolled back", exc_info=True, extra={"extra": {
                "operation": operation, "order_id": str(order_id) if order_id else None, "error": repr(e)}})
            raise InternalError(operation) from e

    async def _load_order(self, order_id: UUID, user: ActingUser | None = None) -> TransferOrder | None:
        stmt = select(TransferOrder).where(TransferOrder.id == order_id)
        if user is not None:
            stmt = stmt.where(authorization.scope(user))
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return result.scalar_one_or_none()

    async def _get_scoped(self, order_id: UUID, user: ActingUser) -> TransferOrder:
        # Чужой заказ и несуществующий неразличимы для вызывающего
        order = await self._load_order(order_id, user)
        if order is None:
            raise NotFoundError("Transfer order", order_id)
        return order

    async def _guard(self, order_id: UUID, expected: frozenset[TransferStatus], **values: Any) -> bool:
        """Conditional UPDATE on the order's status; True when this call won the row."""
        result = await self.session.execute(
            update(TransferOrder)
            .where(TransferOrder.id == order_id, TransferOrder.status.in_(list(expected)))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _current_status(self, order_id: UUID) -> TransferStatus | None:
        return await self.session.scalar(select(TransferOrder.status).where(TransferOrder.id == order_id))

    async def _mark_items(
        self, order_id: UUID, item_ids: list[UUID], status: TransferItemStatus, received_at: dt.datetime | None = None
    ) -> set[UUID]:
        if not item_ids:
            return set()
        values: dict[str, Any] = {"status": status}
        conditions = [TransferOrderItem.order_id == order_id, TransferOrderItem.id.in_(item_ids)]
        if status == TransferItemStatus.RECEIVED:
            values.update(is_received=True, received_at=received_at)
        # Принятые позиции не переписываются
        conditions.append(TransferOrderItem.is_received.is_(False))
        result = await self.session.execute(
            update(TransferOrderItem)
            .where(*conditions)
            .values(**values)
            .returning(TransferOrderItem.id)
            .execution_options(synchronize_session=False)
        )
        return set(result.scalars().all())

    async def _notify(self, pending: list[NotificationEvent]) -> None:
        if self.notifier is None:
            return
        for event in pending:
            try:
                await self.notifier.notify(event.target_branch_id, event.event_type, event.payload)
            except Exception:
                # Зафиксированный заказ не откатывается из-за уведомления
                logger.warning("Notification trigger failed", exc_info=True, extra={"extra": {
                    "event_type": event.event_type, "target_branch_id": str(event.target_branch_id)}})

    @staticmethod
    def _payload(order: TransferOrder, **extra: Any) -> dict[str, Any]:
        payload = {
            "order_id": str(order.id),
            "order_number": order.order_number,
            "kind": order.kind.value,
            "status": order.status.value,
            "from_branch_id": str(order.from_branch_id),
            "to_branch_id": str(order.to_branch_id),
        }
        payload.update(extra)
        return payload
