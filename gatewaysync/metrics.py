from __future__ import annotations

from prometheus_client import Counter

_APIGATEWAY_OPS = Counter(
    "gatewaysync_apigateway_operations_total",
    "Total API Gateway control plane operations",
    labelnames=("action", "result"),
)
_RECONCILIATIONS = Counter(
    "gatewaysync_reconciliations_total",
    "Gateway reconciliations by decided action",
    labelnames=("action", "result"),
)


def record_apigateway_operation(*, action: str, ok: bool) -> None:
    _APIGATEWAY_OPS.labels(action=action, result="ok" if ok else "error").inc()


def record_reconciliation(*, action: str, ok: bool) -> None:
    _RECONCILIATIONS.labels(action=action, result="ok" if ok else "error").inc()
