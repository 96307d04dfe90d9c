from __future__ import annotations

from prometheus_client import Counter, Histogram

SAFECRUD_OPERATION_TOTAL = Counter(
    "safecrud_operation_total",
    "CRUD operations executed, by outcome",
    ["table", "op_type", "outcome"],
)

SAFECRUD_OPERATION_LATENCY_SECONDS = Histogram(
    "safecrud_operation_latency_seconds",
    "Latency of CRUD operations, from argument checks to result",
    ["table", "op_type"],
)
