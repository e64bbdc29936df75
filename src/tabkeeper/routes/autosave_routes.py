"""
Auto-save API routes.

Provides:
- Tab messages (/messages) and external control messages (/external)
- Lifecycle events from the host (/events/...)
- Broadcast refresh (/refresh), registry inspection (/pending)
- Pickup of messages queued for tabs (/outbox)
"""

from typing import Optional

from pydantic import ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse

from tabkeeper.autosave import (
    AutoSaveCoordinator,
    AutoSaveError,
    ExternalMessage,
    Sender,
    Session,
)
from tabkeeper.logger import get_logger

logger = get_logger(__name__)

LIFECYCLE_EVENTS = ("updated", "removed", "discarded")

# Failures caused by a malformed request body
BAD_REQUEST_ERRORS = (ValidationError, AutoSaveError, ValueError, TypeError)


def _get_coordinator(request: Request) -> Optional[AutoSaveCoordinator]:
    """Get the coordinator from app state."""
    return getattr(request.app.state, "coordinator", None)


def _not_initialized() -> JSONResponse:
    return JSONResponse({"error": "Auto-save coordinator not initialized"}, status_code=503)


def _bad_request(error: Exception) -> JSONResponse:
    return JSONResponse({"error": str(error)}, status_code=400)


async def _read_body(request: Request) -> dict:
    """Parse the JSON body, which must be an object."""
    body = await request.json()
    if not isinstance(body, dict):
        raise ValueError("Request body must be a JSON object")
    return body


async def post_message(request: Request) -> JSONResponse:
    """Handle an internal message sent by a tab."""
    if not (coordinator := _get_coordinator(request)):
        return _not_initialized()

    try:
        body = await _read_body(request)
        sender = Sender.model_validate(body.get("sender") or {})
        message = body.get("message") or {}
        if not isinstance(message, dict):
            raise ValueError("message must be a JSON object")
        if sender.tab is not None:
            coordinator.collaborators.sessions.remember(sender.tab)
        result = await coordinator.dispatcher.handle_message(message, sender)
    except BAD_REQUEST_ERRORS as e:
        return _bad_request(e)
    return JSONResponse({"result": result})


async def post_external(request: Request) -> JSONResponse:
    """Handle a control message from an external caller."""
    if not (coordinator := _get_coordinator(request)):
        return _not_initialized()

    try:
        body = await _read_body(request)
        message = ExternalMessage.model_validate(body.get("message") or {})
        if body.get("tab") is not None:
            session = Session.model_validate(body["tab"])
        elif body.get("tabId") is not None:
            session = await coordinator.collaborators.sessions.get_session(int(body["tabId"]))
            if session is None:
                return JSONResponse(
                    {"error": f"Unknown tab {body['tabId']}"}, status_code=404
                )
        else:
            return JSONResponse({"error": "Missing tab or tabId"}, status_code=400)
        result = await coordinator.dispatcher.handle_external_message(message, session)
    except BAD_REQUEST_ERRORS as e:
        return _bad_request(e)
    return JSONResponse({"result": result})


async def post_lifecycle_event(request: Request) -> JSONResponse:
    """Apply updated/removed/discarded for one tab."""
    if not (coordinator := _get_coordinator(request)):
        return _not_initialized()

    event = request.path_params["event"]
    if event not in LIFECYCLE_EVENTS:
        return JSONResponse({"error": f"Unknown event: {event}"}, status_code=404)

    try:
        body = await _read_body(request)
        tab_id = body.get("tabId")
        if tab_id is None:
            return JSONResponse({"error": "Missing tabId"}, status_code=400)
        tab_id = int(tab_id)
    except BAD_REQUEST_ERRORS as e:
        return _bad_request(e)

    handler = {
        "updated": coordinator.on_content_updated,
        "removed": coordinator.on_session_closed,
        "discarded": coordinator.on_session_suspended,
    }[event]
    handler(tab_id)
    return JSONResponse({"success": True})


async def post_replaced(request: Request) -> JSONResponse:
    if not (coordinator := _get_coordinator(request)):
        return _not_initialized()

    try:
        body = await _read_body(request)
        added, removed = body.get("addedTabId"), body.get("removedTabId")
        if added is None or removed is None:
            return JSONResponse(
                {"error": "Missing addedTabId or removedTabId"}, status_code=400
            )
        added, removed = int(added), int(removed)
    except BAD_REQUEST_ERRORS as e:
        return _bad_request(e)
    coordinator.on_identity_replaced(removed, added)
    return JSONResponse({"success": True})


async def post_loaded(request: Request) -> JSONResponse:
    if not (coordinator := _get_coordinator(request)):
        return _not_initialized()

    try:
        body = await _read_body(request)
        session = Session.model_validate(body.get("tab") or {})
    except BAD_REQUEST_ERRORS as e:
        return _bad_request(e)
    requested = await coordinator.on_session_loaded(session)
    return JSONResponse({"saveRequested": requested})


async def post_refresh(request: Request) -> JSONResponse:
    """Push current options and auto-save state to every known tab."""
    if not (coordinator := _get_coordinator(request)):
        return _not_initialized()
    await coordinator.dispatcher.handle_broadcast_refresh()
    return JSONResponse({"success": True})


async def get_pending(request: Request) -> JSONResponse:
    if not (coordinator := _get_coordinator(request)):
        return _not_initialized()
    return JSONResponse(
        {**coordinator.registry.snapshot(), "inFlight": coordinator.in_flight}
    )


async def get_outbox(request: Request) -> JSONResponse:
    """Pop messages queued for tabs, optionally for a single tab."""
    if not (coordinator := _get_coordinator(request)):
        return _not_initialized()

    sessions = coordinator.collaborators.sessions
    if not hasattr(sessions, "drain_outbox"):
        return JSONResponse({"error": "Session directory has no outbox"}, status_code=501)
    tab_id = request.query_params.get("tabId")
    try:
        session_id = int(tab_id) if tab_id is not None else None
    except ValueError as e:
        return _bad_request(e)
    return JSONResponse({"messages": sessions.drain_outbox(session_id)})
