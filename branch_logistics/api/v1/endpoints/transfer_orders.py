from uuid import UUID

from fastapi import APIRouter, Depends

from branch_logistics.api.deps import get_acting_user, get_transfer_service
from branch_logistics.schemas.transfer import (
    CancelConfirmation,
    ReceiveRequest,
    RejectRequest,
    TransferOrderFilter,
    TransferOrderIntent,
    TransferOrderRead,
    TransferStats,
    ValidationResult,
)
from branch_logistics.schemas.user import ActingUser
from branch_logistics.services.transfer_service import TransferService

router = APIRouter(prefix="/transfer-orders")


@router.post("/validate", response_model=ValidationResult, summary="Проверить заказ без сохранения")
async def validate_transfer_order(
    intent: TransferOrderIntent,
    user: ActingUser = Depends(get_acting_user),
    service: TransferService = Depends(get_transfer_service),
):
    return await service.validate_transfer_order(intent, user)


@router.post("", response_model=TransferOrderRead, status_code=201, summary="Создать заказ на перемещение")
async def create_transfer_order(
    intent: TransferOrderIntent,
    user: ActingUser = Depends(get_acting_user),
    service: TransferService = Depends(get_transfer_service),
):
    return await service.create_transfer_order(intent, user)


@router.get("", response_model=list[TransferOrderRead], summary="Список заказов в зоне видимости (страницами: limit, по умолчанию 200, и offset)")
async def list_transfer_orders(
    filters: TransferOrderFilter = Depends(),
    user: ActingUser = Depends(get_acting_user),
    service: TransferService = Depends(get_transfer_service),
):
    return await service.list_orders(filters, user)


@router.get("/pending", response_model=list[TransferOrderRead], summary="Заказы, ожидающие приемки")
async def list_pending_orders(
    filters: TransferOrderFilter = Depends(),
    user: ActingUser = Depends(get_acting_user),
    service: TransferService = Depends(get_transfer_service),
):
    return await service.list_pending_orders(filters, user)


@router.get("/pending-serials", response_model=list[str], summary="Серийные номера в открытых заказах")
async def get_pending_serials(
    filters: TransferOrderFilter = Depends(),
    user: ActingUser = Depends(get_acting_user),
    service: TransferService = Depends(get_transfer_service),
):
    return await service.get_pending_serials(filters, user)


@router.get("/stats", response_model=TransferStats, summary="Сводка по заказам и позициям")
async def get_stats_summary(
    filters: TransferOrderFilter = Depends(),
    user: ActingUser = Depends(get_acting_user),
    service: TransferService = Depends(get_transfer_service),
):
    return await service.get_stats_summary(filters, user)


@router.get("/{order_id}", response_model=TransferOrderRead)
async def get_transfer_order(
    order_id: UUID,
    user: ActingUser = Depends(get_acting_user),
    service: TransferService = Depends(get_transfer_service),
):
    return await service.get_order(order_id, user)


@router.post("/{order_id}/receive", response_model=TransferOrderRead, summary="Принять заказ полностью или частично")
async def receive_transfer_order(
    order_id: UUID,
    body: ReceiveRequest,
    user: ActingUser = Depends(get_acting_user),
    service: TransferService = Depends(get_transfer_service),
):
    return await service.receive_transfer_order(order_id, body.received_item_ids, user)


@router.post("/{order_id}/reject", response_model=TransferOrderRead)
async def reject_transfer_order(
    order_id: UUID,
    body: RejectRequest,
    user: ActingUser = Depends(get_acting_user),
    service: TransferService = Depends(get_transfer_service),
):
    return await service.reject_order(order_id, body.reason, user)


@router.post("/{order_id}/cancel", response_model=CancelConfirmation)
async def cancel_transfer_order(
    order_id: UUID,
    user: ActingUser = Depends(get_acting_user),
    service: TransferService = Depends(get_transfer_service),
):
    return await service.cancel_order(order_id, user)
