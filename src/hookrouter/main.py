"""FastAPI application entry point for the webhook router.

Each POST /webhook delivery goes through the same four steps:

1. verify the X-Hub-Signature-256 HMAC over the exact body bytes
2. parse headers and body into an EventEnvelope
3. route by event type to at most one handler
4. dispatch under the supervisor, which contains handler failures

and is answered with the status the resulting DispatchOutcome maps to.

Run with:
    uvicorn hookrouter.main:get_app --factory
or the ``hookrouter`` console script.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Mapping, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry

from . import __version__
from .config import RouterSettings, load_settings
from .events.emitter import EventEmitter, create_event_emitter
from .events.metrics import generate_metrics_output
from .github.capability import PlatformAPI, create_platform_api
from .handlers import build_handler_registrations
from .handlers.base import EventHandler
from .handlers.dedup import DeliveryDeduplicator
from .webhook.errors import (
    AuthenticationError,
    ConfigurationError,
    MalformedPayloadError,
)
from .webhook.models import (
    DELIVERY_HEADER,
    EVENT_HEADER,
    MALFORMED_PAYLOAD,
    DispatchOutcome,
    RawDelivery,
)
from .webhook.parser import parse_delivery
from .webhook.router import EventRouter
from .webhook.signature import authenticate
from .webhook.supervisor import DispatchSupervisor

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(level=level, format=LOG_FORMAT)


def _redact_secret(value: Optional[str], visible_chars: int = 4) -> str:
    """Redact a secret value, showing only the first few characters.

    Args:
        value: The secret value to redact.
        visible_chars: Number of characters to show at the start.

    Returns:
        Redacted string with asterisks replacing hidden characters, or
        "<not set>" for a missing value.
    """
    if not value:
        return "<not set>"
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)


def _log_configuration(settings: RouterSettings) -> None:
    """Log configuration values with secrets redacted."""
    logger.info("Webhook router configuration:")
    logger.info("  GitHub Base URL: %s", settings.github_base_url)
    logger.info("  GitHub Token: %s", _redact_secret(settings.github_token))
    logger.info(
        "  GitHub Webhook Secret: %s",
        _redact_secret(settings.github_webhook_secret),
    )
    logger.info("  Handler Timeout Seconds: %s", settings.handler_timeout_seconds)
    logger.info("  Dedup TTL Seconds: %s", settings.dedup_ttl_seconds)
    logger.info(
        "  Event Sinks: %s",
        ", ".join(sink.value for sink in settings.event_sinks),
    )
    logger.info("  Host: %s", settings.host)
    logger.info("  Port: %s", settings.port)


def create_app(
    settings: RouterSettings,
    registrations: Optional[Mapping[str, EventHandler]] = None,
    platform_api: Optional[PlatformAPI] = None,
    event_emitter: Optional[EventEmitter] = None,
    metrics_registry: Optional[CollectorRegistry] = None,
) -> FastAPI:
    """Build the webhook router application.

    All collaborators are fixed here and never change while serving.

    Args:
        settings: Validated router settings.
        registrations: Event type -> handler table. Defaults to the built-in
                       handlers wired to ``platform_api``.
        platform_api: Capability given to the built-in handlers. Defaults to
                      one created from the configured token.
        event_emitter: Receives one DeliveryEvent per delivery. Defaults to
                       the sinks named in ``settings.event_sinks``.
        metrics_registry: Prometheus registry for the default metrics sink
                          and /metrics. Defaults to the global registry.

    Returns:
        The configured FastAPI application.

    Raises:
        ConfigurationError: If the webhook secret is blank.
    """
    secret = settings.github_webhook_secret
    if not secret or not secret.strip():
        raise ConfigurationError("GITHUB_WEBHOOK_SECRET must be set")

    owns_platform_api = platform_api is None
    if platform_api is None:
        platform_api = create_platform_api(
            settings.github_token,
            base_url=settings.github_base_url,
        )

    if registrations is None:
        deduplicator = None
        if settings.dedup_ttl_seconds > 0:
            deduplicator = DeliveryDeduplicator(ttl_seconds=settings.dedup_ttl_seconds)
        registrations = build_handler_registrations(platform_api, deduplicator)

    if event_emitter is None:
        event_emitter = create_event_emitter(
            settings.event_sinks,
            registry=metrics_registry,
        )

    router = EventRouter(registrations)
    supervisor = DispatchSupervisor(
        timeout_seconds=settings.handler_timeout_seconds,
        event_emitter=event_emitter,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Webhook router starting up...")
        _log_configuration(settings)
        logger.info(
            "Registered handlers for events: %s",
            ", ".join(router.registered_event_types),
        )

        yield

        logger.info("Webhook router shutting down...")
        if owns_platform_api:
            await platform_api.close()
        await event_emitter.close()
        logger.info("Webhook router shutdown complete")

    app = FastAPI(
        title="GitHub Webhook Router",
        description="Verifies GitHub webhook deliveries and dispatches them to event handlers",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.router = router
    app.state.supervisor = supervisor

    @app.get("/health")
    async def health():
        """Liveness probe endpoint."""
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint."""
        return Response(
            content=generate_metrics_output(metrics_registry),
            media_type=CONTENT_TYPE_LATEST,
        )

    @app.post("/webhook")
    async def github_webhook(request: Request):
        """GitHub webhook receiver endpoint.

        Returns:
            200 when the delivery was handled or has no handler, 401 when
            the signature is missing or wrong, 400 when the payload cannot
            be parsed, 500 when the handler failed or timed out.
        """
        delivery = RawDelivery(
            body=await request.body(),
            headers=dict(request.headers),
        )
        outcome = await _process_delivery(delivery)
        return JSONResponse(outcome.response_body, status_code=outcome.http_status)

    async def _process_delivery(delivery: RawDelivery) -> DispatchOutcome:
        try:
            envelope = parse_delivery(authenticate(secret, delivery).delivery)
        except AuthenticationError as e:
            return await supervisor.reject(
                e.reason.value,
                event_type=delivery.header(EVENT_HEADER),
                delivery_id=delivery.header(DELIVERY_HEADER),
            )
        except MalformedPayloadError as e:
            logger.warning(
                "Rejecting malformed delivery: %s",
                e,
                extra={
                    "event_type": e.event_type,
                    "delivery_id": delivery.header(DELIVERY_HEADER),
                },
            )
            return await supervisor.reject(
                MALFORMED_PAYLOAD,
                event_type=e.event_type,
                delivery_id=delivery.header(DELIVERY_HEADER),
            )

        handler = router.route(envelope)
        if handler is None:
            return await supervisor.accept_unregistered(envelope)
        return await supervisor.dispatch(envelope, handler)

    return app


def get_app() -> FastAPI:
    """Application factory for ``uvicorn --factory``.

    Raises:
        ConfigurationError: If the environment holds no valid configuration.
    """
    settings = load_settings()
    configure_logging(settings.log_level)
    return create_app(settings)


def main() -> None:
    """Run the router with uvicorn using the configured host and port."""
    import uvicorn

    settings = load_settings()
    configure_logging(settings.log_level)
    uvicorn.run(
        "hookrouter.main:get_app",
        factory=True,
        host=settings.host,
        port=settings.port,
    )


if __name__ == "__main__":
    main()
