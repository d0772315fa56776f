"""FastAPI routes for the Linear agent webhook service."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request

from .config import load_settings
from .errors import SignatureVerificationError, WebhookError, WebhookValidationError
from .router import EventRouter
from .runtime import AgentRuntime, build_runtime
from .security import SIGNATURE_HEADER, verify_linear_signature

logger = logging.getLogger(__name__)

DELIVERY_HEADER = "Linear-Delivery"


def _check_signature(runtime: AgentRuntime, body: bytes, signature: str) -> None:
    settings = runtime.settings
    if not settings.verify_signatures:
        return
    if not settings.webhook_secret:
        logger.warning("LINEAR_WEBHOOK_SECRET not set, skipping signature verification")
        return
    if not verify_linear_signature(body, signature, settings.webhook_secret):
        msg = "Invalid signature"
        raise SignatureVerificationError(msg)


def _parse_payload(body: bytes) -> dict[str, Any]:
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        msg = "Invalid JSON"
        raise WebhookValidationError(msg) from e
    if not isinstance(payload, dict) or not payload:
        msg = "Invalid webhook payload"
        raise WebhookValidationError(msg)
    return payload


def create_app(runtime: AgentRuntime | None = None) -> FastAPI:
    """Build the web app.

    Args:
        runtime: Preassembled state, mainly for tests. Built from the
            environment at startup when omitted.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state = runtime or build_runtime(load_settings())
        app.state.runtime = state
        app.state.router = EventRouter(state)
        try:
            await state.resolve_agent_user_id()
        except Exception:
            logger.exception("Failed to look up the agent user id")
        state.sweeps.start()
        logger.info("%s webhook service started", state.settings.agent_name)
        try:
            yield
        finally:
            await state.sweeps.stop()

    app = FastAPI(lifespan=lifespan)

    @app.post("/webhooks/{agent}")
    async def linear_webhook(
        agent: str, request: Request, background_tasks: BackgroundTasks
    ) -> dict[str, Any]:
        """Handle Linear webhooks.

        Verifies and decodes the delivery, then hands it to the event router.
        Replies are generated after the response is sent.
        """
        state: AgentRuntime = request.app.state.runtime
        router: EventRouter = request.app.state.router
        body = await request.body()
        logger.info("Received Linear webhook for %s", agent)

        try:
            _check_signature(state, body, request.headers.get(SIGNATURE_HEADER, ""))
            payload = _parse_payload(body)
            return await router.dispatch(
                payload,
                client_id=request.client.host if request.client else "unknown",
                delivery_id=request.headers.get(DELIVERY_HEADER),
                schedule=background_tasks.add_task,
            )
        except WebhookError as e:
            logger.warning("Rejected webhook: %s", e)
            raise HTTPException(status_code=e.status_code, detail=str(e)) from e
        except Exception as e:
            logger.exception("Webhook processing failed")
            raise HTTPException(status_code=500, detail="Internal server error") from e

    @app.get("/health")
    async def health_check(request: Request) -> dict[str, Any]:
        """Health check endpoint."""
        state: AgentRuntime = request.app.state.runtime
        return {
            "status": "healthy",
            "agent": state.settings.agent_name,
            "timestamp": datetime.now(tz=UTC).isoformat(),
            "sessions": state.sessions.get_stats(),
        }

    return app


app = create_app()
