# ruff: noqa: B008, TC001
from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Query, status

from staffdesk.api.deps import ActorDep, ClockDep, StoreDep
from staffdesk.schemas.common import DecisionPayload, RejectionPayload
from staffdesk.schemas.purchase import (
    FinanceProcessPayload,
    PurchaseRequestListResponse,
    PurchaseRequestResponse,
    SubmitPurchasePayload,
)
from staffdesk.services import purchase as purchase_service

purchase_requests_router = APIRouter(prefix="/purchase-requests", tags=["purchase-requests"])


@purchase_requests_router.post("", response_model=PurchaseRequestResponse, status_code=status.HTTP_201_CREATED)
async def submit_purchase_request(
    payload: SubmitPurchasePayload,
    store: StoreDep,
    clock: ClockDep,
    actor: ActorDep,
) -> PurchaseRequestResponse:
    """Submit a new purchase request."""
    return await purchase_service.submit_purchase_request(store, clock, actor, payload)


@purchase_requests_router.get("", response_model=PurchaseRequestListResponse)
async def list_purchase_requests(
    store: StoreDep,
    actor: ActorDep,
    status_group: Literal["pending", "approved", "rejected"] | None = Query(default=None, alias="status"),
) -> PurchaseRequestListResponse:
    """List the purchase requests the actor may see."""
    return await purchase_service.list_purchase_requests(store, actor, status_group)


@purchase_requests_router.get("/{request_id}", response_model=PurchaseRequestResponse)
async def get_purchase_request(
    request_id: str,
    store: StoreDep,
    actor: ActorDep,
) -> PurchaseRequestResponse:
    return await purchase_service.get_purchase_request(store, actor, request_id)


@purchase_requests_router.post("/{request_id}/manager-approve", response_model=PurchaseRequestResponse)
async def manager_approve_purchase(
    request_id: str,
    store: StoreDep,
    clock: ClockDep,
    actor: ActorDep,
    payload: DecisionPayload | None = None,
) -> PurchaseRequestResponse:
    return await purchase_service.manager_approve_purchase(
        store, clock, actor, request_id, payload or DecisionPayload()
    )


@purchase_requests_router.post("/{request_id}/manager-reject", response_model=PurchaseRequestResponse)
async def manager_reject_purchase(
    request_id: str,
    payload: RejectionPayload,
    store: StoreDep,
    clock: ClockDep,
    actor: ActorDep,
) -> PurchaseRequestResponse:
    return await purchase_service.manager_reject_purchase(store, clock, actor, request_id, payload)


@purchase_requests_router.post("/{request_id}/ceo-approve", response_model=PurchaseRequestResponse)
async def ceo_approve_purchase(
    request_id: str,
    store: StoreDep,
    clock: ClockDep,
    actor: ActorDep,
    payload: DecisionPayload | None = None,
) -> PurchaseRequestResponse:
    """Final approval (CEO or admin)."""
    return await purchase_service.ceo_approve_purchase(store, clock, actor, request_id, payload or DecisionPayload())


@purchase_requests_router.post("/{request_id}/ceo-reject", response_model=PurchaseRequestResponse)
async def ceo_reject_purchase(
    request_id: str,
    payload: RejectionPayload,
    store: StoreDep,
    clock: ClockDep,
    actor: ActorDep,
) -> PurchaseRequestResponse:
    return await purchase_service.ceo_reject_purchase(store, clock, actor, request_id, payload)


@purchase_requests_router.post("/{request_id}/finance-process", response_model=PurchaseRequestResponse)
async def process_purchase_by_finance(
    request_id: str,
    payload: FinanceProcessPayload,
    store: StoreDep,
    clock: ClockDep,
    actor: ActorDep,
) -> PurchaseRequestResponse:
    """Issue a purchase order for an approved request (finance only)."""
    return await purchase_service.process_purchase_by_finance(store, clock, actor, request_id, payload)
