"""Download landing page and confirmed redemption."""

from __future__ import annotations

import html
from typing import TYPE_CHECKING

from fastapi import APIRouter, Cookie, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse

from kiosk_capture.errors import KioskError

if TYPE_CHECKING:
    from kiosk_capture.containers import AppContainer

router = APIRouter(prefix="/dl", tags=["downloads"])

CONFIRMATION_COOKIE = "kiosk_dl"


@router.get("/{token}", response_class=HTMLResponse)
async def download_landing(token: str, request: Request) -> HTMLResponse:
    """Show the grant and set a fresh single-use confirmation cookie.

    Nothing is consumed here, so link prefetchers cannot burn downloads.
    """
    container: AppContainer = request.app.state.container
    try:
        view = container.kiosk_service.open_download(token)
    except KioskError as exc:
        return _message_page(exc)

    safe_token = html.escape(token)
    page = _LANDING_HTML.format(
        action=f"/dl/{safe_token}/go",
        remaining=view.remaining_uses,
        expires=f"{view.expires_at:%Y-%m-%d %H:%M} UTC",
    )
    response = HTMLResponse(page, headers={"Cache-Control": "no-store"})
    response.set_cookie(
        CONFIRMATION_COOKIE,
        view.confirmation,
        max_age=container.settings.confirmation_ttl_seconds,
        path=f"/dl/{token}",
        httponly=True,
        samesite="lax",
        secure=container.settings.public_base_url.startswith("https://"),
    )
    return response


@router.post("/{token}/go", response_model=None)
async def redeem_download(
    token: str,
    request: Request,
    kiosk_dl: str | None = Cookie(default=None),
) -> HTMLResponse | RedirectResponse:
    """Consume one use and redirect to the signed original."""
    container: AppContainer = request.app.state.container
    try:
        redemption = container.kiosk_service.redeem(token, kiosk_dl)
    except KioskError as exc:
        response = _message_page(exc)
    else:
        response = RedirectResponse(
            redemption.url, status_code=status.HTTP_302_FOUND
        )
    response.delete_cookie(CONFIRMATION_COOKIE, path=f"/dl/{token}")
    return response


def _message_page(exc: KioskError) -> HTMLResponse:
    page = _MESSAGE_HTML.format(
        state=html.escape(exc.state), message=html.escape(exc.detail)
    )
    return HTMLResponse(
        page, status_code=exc.status_code, headers={"Cache-Control": "no-store"}
    )


_STYLE = """
    <style>
      body { font-family: ui-sans-serif, system-ui, sans-serif; margin: 2rem;
             text-align: center; }
      .card { max-width: 28rem; margin: 0 auto; padding: 1.5rem;
              border: 1px solid #ddd; border-radius: 12px; }
      button { font-size: 1.1rem; padding: 0.75rem 1.5rem; border-radius: 8px; }
      .muted { color: #666; }
    </style>
"""

_LANDING_HTML = (
    """<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <meta name="robots" content="noindex" />
    <title>Your download</title>"""
    + _STYLE.replace("{", "{{").replace("}", "}}")
    + """  </head>
  <body>
    <div class="card">
      <h1>Your capture is ready</h1>
      <p class="muted">Downloads left: {remaining}. Link valid until {expires}.</p>
      <form method="post" action="{action}">
        <button type="submit">Download</button>
      </form>
    </div>
  </body>
</html>
"""
)

_MESSAGE_HTML = (
    """<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <meta name="robots" content="noindex" />
    <title>Download unavailable</title>"""
    + _STYLE.replace("{", "{{").replace("}", "}}")
    + """  </head>
  <body>
    <div class="card" data-state="{state}">
      <h1>Download unavailable</h1>
      <p>{message}</p>
    </div>
  </body>
</html>
"""
)
