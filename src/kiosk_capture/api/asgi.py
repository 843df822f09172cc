"""ASGI entrypoint for the kiosk capture API."""

from kiosk_capture.api.app import create_app
from kiosk_capture.containers import build_container

app = create_app(build_container())
