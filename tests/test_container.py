"""Tests for container wiring."""

import asyncio

from kiosk_capture.adapters.ffmpeg_runner import FfmpegRunner
from kiosk_capture.adapters.stripe_payment_client import StripePaymentClient
from kiosk_capture.containers import build_container


def test_build_container_creates_services(settings) -> None:
    container = build_container(settings)

    assert container.session_service is not None
    assert container.notification_service.mail_client is None
    assert isinstance(container.payment_service.payment_client, StripePaymentClient)
    assert isinstance(container.kiosk_service.capture_service.runner, FfmpegRunner)
    assert container.stream_supervisor.processes == {}
    asyncio.run(container.close_resources())


def test_build_container_enables_mail_relay(settings) -> None:
    settings.mail_api_url = "https://mail.test/send"
    settings.mail_api_key = "key"

    container = build_container(settings)

    assert container.notification_service.mail_client is not None
    asyncio.run(container.close_resources())


def test_scheduler_jobs_are_registered(container) -> None:
    asyncio.run(container.scheduler.run_once("lock_sweep"))
    asyncio.run(container.scheduler.run_once("retention_sweep"))
    asyncio.run(container.scheduler.run_once("confirmation_purge"))
