"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

from supabase import create_client

from kiosk_capture.adapters.ffmpeg_runner import FfmpegRunner, MediaRunner
from kiosk_capture.adapters.mail_client import HttpxMailClient, MailClient
from kiosk_capture.adapters.stripe_payment_client import StripePaymentClient
from kiosk_capture.adapters.supabase_blob_store import SupabaseBlobStore
from kiosk_capture.adapters.supabase_catalog_repository import (
    SupabaseDeviceRepository,
    SupabaseOverlayRepository,
    SupabasePricingRepository,
)
from kiosk_capture.adapters.supabase_grant_repository import SupabaseGrantRepository
from kiosk_capture.adapters.supabase_payment_event_repository import (
    SupabasePaymentEventRepository,
)
from kiosk_capture.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from kiosk_capture.config import Settings
from kiosk_capture.services.cache import InMemoryCache
from kiosk_capture.services.capture import CaptureService
from kiosk_capture.services.cleanup import CleanupService
from kiosk_capture.services.downloads import DownloadService, GrantRepository
from kiosk_capture.services.kiosk import KioskService
from kiosk_capture.services.live_timeouts import LiveTimeouts
from kiosk_capture.services.locks import DeviceLockManager
from kiosk_capture.services.notifications import NotificationService
from kiosk_capture.services.overlays import OverlayRepository, OverlayService
from kiosk_capture.services.payments import (
    EventRepository,
    PaymentClient,
    PaymentService,
)
from kiosk_capture.services.pricing import PricingRepository, PricingService
from kiosk_capture.services.scheduler import BackgroundScheduler
from kiosk_capture.services.sessions import (
    DeviceRepository,
    SessionRepository,
    SessionService,
)
from kiosk_capture.services.storage import BlobStore
from kiosk_capture.services.streaming import LiveStreamSupervisor


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    lock_manager: DeviceLockManager
    session_service: SessionService
    stream_supervisor: LiveStreamSupervisor
    payment_service: PaymentService
    download_service: DownloadService
    notification_service: NotificationService
    cleanup_service: CleanupService
    kiosk_service: KioskService
    scheduler: BackgroundScheduler
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    blob_store = SupabaseBlobStore(supabase_client, resolved_settings.supabase_bucket)
    session_repository = SupabaseSessionRepository(supabase_client)
    mail_client = None
    if resolved_settings.mail_api_url and resolved_settings.mail_api_key:
        mail_client = HttpxMailClient.create(
            api_url=resolved_settings.mail_api_url,
            api_key=resolved_settings.mail_api_key,
            sender=resolved_settings.mail_from,
        )
    payment_client = StripePaymentClient(
        api_key=resolved_settings.stripe_secret_key,
        webhook_secret=resolved_settings.stripe_webhook_secret,
        payment_method_types=resolved_settings.stripe_payment_method_types,
    )

    async def close_resources() -> None:
        if mail_client is not None:
            await mail_client.close()

    return assemble_container(
        settings=resolved_settings,
        session_repository=session_repository,
        device_repository=SupabaseDeviceRepository(supabase_client),
        overlay_repository=SupabaseOverlayRepository(supabase_client),
        pricing_repository=SupabasePricingRepository(supabase_client),
        grant_repository=SupabaseGrantRepository(supabase_client),
        event_repository=SupabasePaymentEventRepository(supabase_client),
        blob_store=blob_store,
        runner=FfmpegRunner(resolved_settings.ffmpeg_binary),
        payment_client=payment_client,
        mail_client=mail_client,
        close_resources=close_resources,
    )


def assemble_container(  # noqa: PLR0913
    settings: Settings,
    session_repository: SessionRepository,
    device_repository: DeviceRepository,
    overlay_repository: OverlayRepository,
    pricing_repository: PricingRepository,
    grant_repository: GrantRepository,
    event_repository: EventRepository,
    blob_store: BlobStore,
    runner: MediaRunner,
    payment_client: PaymentClient,
    mail_client: MailClient | None,
    close_resources: Callable[[], Awaitable[None]],
) -> AppContainer:
    """Wire services on top of already-built adapters."""
    lock_manager = DeviceLockManager(ttl_seconds=settings.lock_ttl_seconds)
    session_service = SessionService(
        session_repository=session_repository,
        device_repository=device_repository,
        locks=lock_manager,
        blob_store=blob_store,
        live_timeout_seconds=settings.live_timeout_seconds,
        unpaid_retention_seconds=settings.unpaid_retention_seconds,
    )
    overlay_service = OverlayService(
        repository=overlay_repository,
        blob_store=blob_store,
        preview_url_ttl_seconds=settings.overlay_fetch_ttl_seconds,
    )
    stream_supervisor = LiveStreamSupervisor(
        runner=runner,
        overlay_service=overlay_service,
        hls_dir=Path(settings.hls_dir),
        processes={},
        stop_grace_seconds=settings.stream_stop_grace_seconds,
    )
    capture_service = CaptureService(
        sessions=session_service,
        overlays=overlay_service,
        streams=stream_supervisor,
        runner=runner,
        blob_store=blob_store,
        watermark_text=settings.preview_watermark_text,
        workdir=Path(settings.capture_workdir) if settings.capture_workdir else None,
        preview_url_ttl_seconds=settings.preview_url_ttl_seconds,
        unpaid_retention_seconds=settings.unpaid_retention_seconds,
    )
    confirmations = InMemoryCache()
    download_service = DownloadService(
        grant_repository=grant_repository,
        sessions=session_service,
        blob_store=blob_store,
        confirmations=confirmations,
        signing_secret=settings.download_signing_secret,
        grant_ttl_seconds=settings.grant_ttl_seconds,
        grant_max_uses=settings.grant_max_uses,
        confirmation_ttl_seconds=settings.confirmation_ttl_seconds,
        download_url_ttl_seconds=settings.download_url_ttl_seconds,
    )
    notification_service = NotificationService(
        mail_client=mail_client, public_base_url=settings.public_base_url
    )
    payment_service = PaymentService(
        sessions=session_service,
        pricing=PricingService(pricing_repository),
        downloads=download_service,
        payment_client=payment_client,
        event_repository=event_repository,
        notifications=notification_service,
        frontend_base_url=settings.frontend_base_url,
    )
    cleanup_service = CleanupService(
        session_repository=session_repository, blob_store=blob_store
    )
    kiosk_service = KioskService(
        sessions=session_service,
        overlays=overlay_service,
        streams=stream_supervisor,
        capture_service=capture_service,
        payments=payment_service,
        downloads=download_service,
        timeouts=LiveTimeouts(),
        playlist_wait_seconds=settings.playlist_wait_seconds,
    )

    scheduler = BackgroundScheduler()
    scheduler.add_job(
        "lock_sweep", settings.lock_sweep_interval_seconds, lock_manager.sweep
    )
    scheduler.add_job(
        "retention_sweep", settings.cleanup_interval_seconds, cleanup_service.sweep
    )
    scheduler.add_job(
        "confirmation_purge", settings.cleanup_interval_seconds, confirmations.purge
    )

    return AppContainer(
        settings=settings,
        lock_manager=lock_manager,
        session_service=session_service,
        stream_supervisor=stream_supervisor,
        payment_service=payment_service,
        download_service=download_service,
        notification_service=notification_service,
        cleanup_service=cleanup_service,
        kiosk_service=kiosk_service,
        scheduler=scheduler,
        close_resources=close_resources,
    )
