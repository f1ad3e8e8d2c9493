"""
Monitoring Module

Prometheus instrumentation for the read-through cache.
"""

from .cache_metrics import (
    cache_lookups_total,
    backing_store_fetches_total,
    lock_acquisitions_total,
    rebuild_tasks_total,
    rebuild_queue_depth,
)

__all__ = [
    "cache_lookups_total",
    "backing_store_fetches_total",
    "lock_acquisitions_total",
    "rebuild_tasks_total",
    "rebuild_queue_depth",
]
