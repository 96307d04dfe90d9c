from __future__ import annotations

import logging

from ..metrics.registry import (
    SAFECRUD_OPERATION_LATENCY_SECONDS,
    SAFECRUD_OPERATION_TOTAL,
)

logger = logging.getLogger(__name__)


def observe_operation(table: str, op_type: str, outcome: str, latency_s: float) -> None:
    """
    Record one CRUD call.

    Metric failures are logged and never propagate, so they cannot mask the
    result of the operation being observed.
    """
    try:
        SAFECRUD_OPERATION_TOTAL.labels(table=table, op_type=op_type, outcome=outcome).inc()
        SAFECRUD_OPERATION_LATENCY_SECONDS.labels(table=table, op_type=op_type).observe(latency_s)
    except Exception:
        logger.debug("Failed to record metrics for %s on %s", op_type, table, exc_info=True)
