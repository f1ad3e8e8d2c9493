"""
Cache Metrics

Prometheus counters for read strategies, rebuild locks and background rebuilds.
"""

from prometheus_client import Counter, Gauge

cache_lookups_total = Counter(
    "cacheguard_lookups_total",
    "Cache lookups by namespace, strategy and result",
    ["namespace", "strategy", "result"],
)

backing_store_fetches_total = Counter(
    "cacheguard_backing_store_fetches_total",
    "Synchronous and background fetches from the backing store",
    ["namespace", "outcome"],
)

lock_acquisitions_total = Counter(
    "cacheguard_lock_acquisitions_total",
    "Rebuild lock acquisition attempts",
    ["outcome"],
)

rebuild_tasks_total = Counter(
    "cacheguard_rebuild_tasks_total",
    "Background rebuild tasks by outcome",
    ["outcome"],
)

rebuild_queue_depth = Gauge(
    "cacheguard_rebuild_queue_depth",
    "Rebuild tasks waiting for a worker",
)


def record_lookup(namespace: str, strategy: str, result: str) -> None:
    cache_lookups_total.labels(
        namespace=namespace, strategy=strategy, result=result
    ).inc()


def record_fetch(namespace: str, outcome: str) -> None:
    backing_store_fetches_total.labels(namespace=namespace, outcome=outcome).inc()
