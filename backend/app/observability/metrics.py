"""Metric helpers recorded as Opik traces."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from app.observability import client as opik_client

logger = logging.getLogger(__name__)


def log_metric(name: str, value: float | int, metadata: Optional[Dict[str, Any]] = None) -> None:
    """Record ``value`` under ``metric:<name>``; silently skipped when Opik is off."""
    client = opik_client.get_opik_client()
    if not client:
        return

    payload: Dict[str, Any] = dict(metadata or {})
    payload["value"] = value

    try:
        metric_trace = client.trace(name=f"metric:{name}", metadata=payload)
        metric_trace.end()
    except Exception as exc:  # pragma: no cover - SDK failure
        logger.debug("Dropping metric %s: %s", name, exc)
