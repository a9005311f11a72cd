"""HTTP API for chat-driven and direct reminder management."""

from __future__ import annotations

import asyncio
import hmac
import json as json_mod
import logging
import os
from datetime import datetime
from typing import Any

from aiohttp import web
from jsonschema import Draft7Validator

from echomind.chat import handle_chat_message
from echomind.scheduling.reminders import ReminderRecord, parse_timestamp
from echomind.scheduling.scheduler import SchedulingError
from echomind.service import ReminderService

log = logging.getLogger(__name__)

_MAX_PAYLOAD_SIZE = 10 * 1024  # 10KB

CHAT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["message"],
    "properties": {
        "message": {"type": "string", "minLength": 1, "maxLength": 2000},
        "conversationId": {"type": "string"},
        "isVoice": {"type": "boolean"},
    },
}

CREATE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["title", "scheduledAt"],
    "properties": {
        "title": {"type": "string", "minLength": 1, "maxLength": 500},
        "scheduledAt": {"type": "string", "minLength": 1},
        "description": {"type": "string", "maxLength": 500},
    },
    "additionalProperties": False,
}

UPDATE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {"type": "string", "minLength": 1, "maxLength": 500},
        "scheduledAt": {"type": "string", "minLength": 1},
        "completed": {"type": "boolean"},
    },
    "additionalProperties": False,
}


def validate_payload(schema: dict[str, Any], data: Any) -> list[str]:
    """Validate data against JSON Schema. Returns list of error messages."""
    return [err.message for err in Draft7Validator(schema).iter_errors(data)]


def verify_auth(auth_header: str, secret: str) -> bool:
    """Constant-time comparison of Bearer token."""
    return hmac.compare_digest(auth_header, f"Bearer {secret}")


def record_to_json(record: ReminderRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "userId": record.user_id,
        "title": record.task,
        "description": record.description,
        "scheduledAt": record.when.isoformat(),
        "completed": record.completed,
    }


def _error(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status)


def _bad_request(payload: dict[str, Any]) -> web.HTTPBadRequest:
    return web.HTTPBadRequest(
        text=json_mod.dumps(payload), content_type="application/json"
    )


# ---------------------------------------------------------------------------
# HTTP handlers
# ---------------------------------------------------------------------------

_KEY_SECRET = web.AppKey("secret", str)
_KEY_SERVICE = web.AppKey("service", ReminderService)


@web.middleware
async def _auth_middleware(request: web.Request, handler: Any) -> web.StreamResponse:
    secret = request.app[_KEY_SECRET]
    if not verify_auth(request.headers.get("Authorization", ""), secret):
        return _error("unauthorized", 401)
    return await handler(request)


async def _read_json(request: web.Request, schema: dict[str, Any]) -> Any:
    """Parse and validate the body; raises an HTTP 400 response on bad input."""
    try:
        data = await request.json()
    except ValueError:
        raise _bad_request({"error": "invalid json"}) from None
    errors = validate_payload(schema, data)
    if errors:
        raise _bad_request({"error": "validation failed", "details": errors})
    return data


def _timestamp_or_400(value: str) -> datetime:
    try:
        return parse_timestamp(value)
    except ValueError:
        raise _bad_request({"error": "invalid scheduledAt"}) from None


async def _handle_chat(request: web.Request) -> web.Response:
    """Handle POST /api/chat."""
    data = await _read_json(request, CHAT_SCHEMA)
    service = request.app[_KEY_SERVICE]
    try:
        reply = await asyncio.to_thread(handle_chat_message, service, data["message"])
    except SchedulingError:
        return _error("failed to schedule reminder", 500)
    return web.json_response({"reply": reply, "handled": reply is not None})


async def _handle_list(request: web.Request) -> web.Response:
    """Handle GET /api/reminders."""
    service = request.app[_KEY_SERVICE]
    records = await asyncio.to_thread(service.records)
    return web.json_response([record_to_json(r) for r in records])


async def _handle_create(request: web.Request) -> web.Response:
    """Handle POST /api/reminders."""
    data = await _read_json(request, CREATE_SCHEMA)
    when = _timestamp_or_400(data["scheduledAt"])
    service = request.app[_KEY_SERVICE]
    try:
        record = await asyncio.to_thread(
            service.create,
            data["title"],
            when,
            description=data.get("description", ""),
        )
    except ValueError as exc:
        return _error(str(exc), 400)
    except SchedulingError:
        log.exception("Error creating reminder")
        return _error("failed to create reminder", 500)
    return web.json_response(record_to_json(record), status=201)


async def _handle_update(request: web.Request) -> web.Response:
    """Handle PATCH /api/reminders/{id}."""
    data = await _read_json(request, UPDATE_SCHEMA)
    when = _timestamp_or_400(data["scheduledAt"]) if "scheduledAt" in data else None
    service = request.app[_KEY_SERVICE]
    record_id = request.match_info["id"]
    try:
        record = await asyncio.to_thread(
            service.update,
            record_id,
            task=data.get("title"),
            scheduled_at=when,
            completed=data.get("completed"),
        )
    except ValueError as exc:
        return _error(str(exc), 400)
    except SchedulingError:
        log.exception("Error updating reminder %s", record_id)
        return _error("failed to update reminder", 500)
    if record is None:
        return _error(f"reminder not found: {record_id}", 404)
    return web.json_response(record_to_json(record))


async def _handle_delete(request: web.Request) -> web.Response:
    """Handle DELETE /api/reminders/{id}."""
    service = request.app[_KEY_SERVICE]
    record_id = request.match_info["id"]
    if not await asyncio.to_thread(service.cancel, record_id):
        return _error(f"reminder not found: {record_id}", 404)
    return web.Response(status=204)


def create_app(service: ReminderService, *, secret: str) -> web.Application:
    """Create aiohttp application for the reminder API."""
    app = web.Application(
        client_max_size=_MAX_PAYLOAD_SIZE, middlewares=[_auth_middleware]
    )
    app[_KEY_SECRET] = secret
    app[_KEY_SERVICE] = service
    app.router.add_post("/api/chat", _handle_chat)
    app.router.add_get("/api/reminders", _handle_list)
    app.router.add_post("/api/reminders", _handle_create)
    app.router.add_patch("/api/reminders/{id}", _handle_update)
    app.router.add_delete("/api/reminders/{id}", _handle_delete)
    return app


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------

_runner: web.AppRunner | None = None


async def start(service: ReminderService) -> bool:
    """Start the API server if ECHOMIND_API_PORT and ECHOMIND_API_SECRET are set."""
    global _runner  # noqa: PLW0603
    port_str = os.environ.get("ECHOMIND_API_PORT")
    secret = os.environ.get("ECHOMIND_API_SECRET")

    if not port_str:
        return False
    if not secret:
        log.error("ECHOMIND_API_PORT set but ECHOMIND_API_SECRET missing -- API disabled")
        return False

    port = int(port_str)
    _runner = web.AppRunner(create_app(service, secret=secret))
    await _runner.setup()
    site = web.TCPSite(_runner, "127.0.0.1", port)
    await site.start()
    log.info("API server started on 127.0.0.1:%d", port)
    return True


async def stop() -> None:
    """Graceful shutdown of the API server."""
    global _runner  # noqa: PLW0603
    if _runner:
        await _runner.cleanup()
        _runner = None
        log.info("API server stopped")
