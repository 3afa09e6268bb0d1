"""
Checkout API routes.

Keep this thin: request parsing, caller identity and envelopes only. All
state changes happen in the checkout services built at startup.
"""
from __future__ import annotations

import html
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse

from api.dependencies import CurrentUser, get_checkout, get_current_user, require_admin
from application.dtos.payments import CheckoutRequest
from application.services.callback_handler import extract_callback_payload
from application.services.checkout import CheckoutServices
from core.config import settings
from core.logging_config import get_logger
from core.response import offset_page_response, success_response
from domain.checkout.entity import SessionStatus
from domain.common.exceptions import DomainValidationException, PaymentSessionNotFoundException
from infrastructure.external.payments.mock_client import MockGatewayClient


router = APIRouter(prefix="/payment", tags=["Payment"])
logger = get_logger(__name__)

CHECKSUM_HEADER = "X-VERIFY"


def _dump(model) -> dict:
    return model.model_dump(mode="json", by_alias=True)


@router.post("/create-session", status_code=status.HTTP_201_CREATED, summary="Create payment session")
async def create_session(
    payload: CheckoutRequest,
    current_user: CurrentUser = Depends(get_current_user),
    checkout: CheckoutServices = Depends(get_checkout),
):
    summary = await checkout.sessions.create_session(
        current_user.user_id,
        payload.address_mapping(),
        payload.cart_item_ids,
    )
    return success_response(data=_dump(summary), message="Payment session created")


@router.post("/gateway/callback", summary="Gateway server-to-server callback")
async def gateway_callback(request: Request, checkout: CheckoutServices = Depends(get_checkout)):
    raw_payload = extract_callback_payload(await request.body())
    ack = await checkout.callbacks.handle_callback(raw_payload, request.headers.get(CHECKSUM_HEADER))
    return success_response(data=_dump(ack), message="Callback processed")


@router.get("/status/{transaction_id}", summary="Payment session status")
async def payment_status(
    transaction_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    checkout: CheckoutServices = Depends(get_checkout),
):
    view = await checkout.poller.poll(transaction_id, current_user.user_id)
    return success_response(data=_dump(view))


@router.post("/cod-order", status_code=status.HTTP_201_CREATED, summary="Place cash-on-delivery order")
async def cod_order(
    payload: CheckoutRequest,
    current_user: CurrentUser = Depends(get_current_user),
    checkout: CheckoutServices = Depends(get_checkout),
):
    order = await checkout.cod.place_order(
        current_user.user_id,
        payload.address_mapping(),
        payload.cart_item_ids,
    )
    return success_response(data=_dump(order), message="Order placed")


# Operator surface


def _parse_status(value: Optional[str]) -> Optional[SessionStatus]:
    if not value:
        return None
    try:
        return SessionStatus(value.upper())
    except ValueError:
        raise DomainValidationException(
            f"Unknown session status: {value}",
            field="status",
            details={"allowed": [s.value for s in SessionStatus]},
        )


@router.get("/admin/sessions", summary="List payment sessions")
async def admin_list_sessions(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    _: CurrentUser = Depends(require_admin),
    checkout: CheckoutServices = Depends(get_checkout),
):
    sessions = await checkout.reconciliation.list_sessions(_parse_status(status_filter), skip=skip, limit=limit)
    return offset_page_response([_dump(s) for s in sessions], skip=skip, limit=limit)


@router.get("/admin/reconciliation", summary="Paid sessions without an order")
async def admin_reconciliation_queue(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    _: CurrentUser = Depends(require_admin),
    checkout: CheckoutServices = Depends(get_checkout),
):
    sessions = await checkout.reconciliation.list_queue(skip=skip, limit=limit)
    return offset_page_response([_dump(s) for s in sessions], skip=skip, limit=limit)


@router.post("/admin/reconciliation/{transaction_id}/retry", summary="Retry order materialization")
async def admin_retry_materialization(
    transaction_id: str,
    operator: CurrentUser = Depends(require_admin),
    checkout: CheckoutServices = Depends(get_checkout),
):
    order = await checkout.reconciliation.retry(transaction_id, operator_id=operator.user_id)
    return success_response(data=_dump(order), message="Order materialized")


# Mock hosted checkout (only when the mock gateway is configured)


def _mock_gateway(checkout: CheckoutServices) -> MockGatewayClient:
    gateway = checkout.gateway
    if not isinstance(gateway, MockGatewayClient):
        raise PaymentSessionNotFoundException("mock gateway disabled")
    return gateway


_PAY_PAGE = """<!doctype html>
<html>
<head><meta charset="utf-8"><title>Mock payment</title></head>
<body>
<h1>Mock payment</h1>
<p>Transaction: <code>{txn}</code></p>
<p>Amount: &#8377;{amount:.2f}</p>
<p>State: {state}</p>
<form method="post" action="{action}?success=true&amp;redirect=true"><button type="submit">Pay</button></form>
<form method="post" action="{action}?success=false&amp;redirect=true"><button type="submit">Fail</button></form>
</body>
</html>
"""


@router.get("/mock/pay", response_class=HTMLResponse, include_in_schema=False)
async def mock_pay_page(
    transaction_id: str = Query(alias="transactionId"),
    checkout: CheckoutServices = Depends(get_checkout),
):
    gateway = _mock_gateway(checkout)
    info = await gateway.describe(transaction_id)
    action = f"{gateway.public_base_url.rstrip('/')}/complete/{html.escape(transaction_id, quote=True)}"
    return HTMLResponse(
        _PAY_PAGE.format(
            txn=html.escape(transaction_id),
            amount=info["amount"],
            state=html.escape(str(info["state"])),
            action=action,
        )
    )


@router.post("/mock/complete/{transaction_id}", include_in_schema=False)
async def mock_complete(
    transaction_id: str,
    success: bool = Query(default=True),
    redirect: bool = Query(default=False),
    checkout: CheckoutServices = Depends(get_checkout),
):
    gateway = _mock_gateway(checkout)
    payload, digest = await gateway.complete(transaction_id, success=success)
    # Same path a real gateway callback takes
    ack = await checkout.callbacks.handle_callback(payload, digest)
    if redirect:
        return RedirectResponse(
            f"{settings.checkout.redirect_url}?transactionId={transaction_id}",
            status_code=status.HTTP_303_SEE_OTHER,
        )
    return success_response(data=_dump(ack), message="Mock payment completed")
