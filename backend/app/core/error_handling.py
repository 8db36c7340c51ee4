"""Error handling utilities: structured logging and error responses."""
from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)


def log_error_with_context(
    error: Exception,
    node_name: str,
    session_id: str | None = None,
    tick: int | None = None,
    agent_name: str | None = None,
    extra_context: dict[str, Any] | None = None,
) -> None:
    """
    Log an error with context (session, tick, pipeline stage) and stack trace.

    Args:
        error: The exception that occurred
        node_name: Pipeline stage or endpoint (e.g., 'eligibility', 'scoring', 'api')
        session_id: Director session id, when running behind the API
        tick: Simulation tick being processed
        agent_name: Function or route that caught the error
        extra_context: Additional context dict to include in log
    """
    context_parts = []
    if session_id:
        context_parts.append(f"session_id={session_id}")
    if tick is not None:
        context_parts.append(f"tick={tick}")
    if agent_name:
        context_parts.append(f"where={agent_name}")
    context_str = ", ".join(context_parts) if context_parts else "no context"

    extra: dict[str, Any] = {}
    if extra_context:
        extra.update(extra_context)
    if session_id:
        extra["session_id"] = session_id
    if tick is not None:
        extra["tick"] = tick
    extra["node_name"] = node_name

    logger.error(
        "[%s] Error: %s: %s (%s)",
        node_name,
        type(error).__name__,
        error,
        context_str,
        exc_info=True,
        extra={"director_context": extra},
    )


def create_error_response(
    error_code: str,
    message: str,
    node: str | None = None,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Create a structured error response for API endpoints.

    Args:
        error_code: Error code (e.g., 'CONFIG_INVALID', 'SESSION_HTTP_404')
        message: Human-readable error message
        node: Component where the error occurred
        details: Additional error details

    Returns:
        Structured error dict
    """
    response: dict[str, Any] = {
        "error_code": error_code,
        "message": message,
    }
    if node:
        response["node"] = node
    if details:
        response["details"] = details
    return response
