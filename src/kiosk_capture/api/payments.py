"""Payment processor webhook endpoint."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Header, Request

if TYPE_CHECKING:
    from kiosk_capture.containers import AppContainer

router = APIRouter(tags=["payments"])


@router.post("/stripe/webhook")
async def stripe_webhook(
    request: Request, stripe_signature: str | None = Header(default=None)
) -> dict[str, object]:
    """Verify and apply a Stripe event.

    Errors raised before the event is claimed produce a non-2xx answer so
    Stripe redelivers; duplicates are acknowledged.
    """
    container: AppContainer = request.app.state.container
    payload = await request.body()
    outcome = await container.kiosk_service.handle_webhook(payload, stripe_signature)
    return {"received": True, "outcome": str(outcome)}
