"""Diagnostics channel for per-tick anomalies.

Anything that goes wrong inside a director step is logged and appended to the
step result's ``warnings`` list instead of being raised to the host loop.
"""
from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)


def _get_container(target: Any) -> list[str] | None:
    """Return a mutable warnings list from target (list, dict, or object with .warnings)."""
    if target is None:
        return None
    if isinstance(target, list):
        return target
    if isinstance(target, dict):
        warnings = target.get("warnings")
        if warnings is None:
            warnings = []
            target["warnings"] = warnings
        return warnings
    warnings = getattr(target, "warnings", None)
    if isinstance(warnings, list):
        return warnings
    return None


def add_warning(target: Any, message: str, log: bool = True) -> None:
    """Log a diagnostic and append it to the target's warning list (deduped)."""
    if not message:
        return
    if log:
        logger.warning("%s", message)
    warnings = _get_container(target)
    if warnings is None:
        return
    if message not in warnings:
        warnings.append(message)
