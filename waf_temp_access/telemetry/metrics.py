from __future__ import annotations

from typing import Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram, write_to_textfile


class Metrics:
    """Prometheus metrics for grant/revoke runs.

    Note: the CLI is short-lived, so instead of serving /metrics it dumps the registry with
    write_textfile() (node_exporter textfile collector). Pass a fresh CollectorRegistry when
    more than one Metrics instance lives in the same process (tests).
    """

    def __init__(self, service: str, registry: Optional[CollectorRegistry] = None):
        self.service = service
        self.registry = registry if registry is not None else REGISTRY

        # Store I/O
        self.store_requests_total = Counter(
            "store_requests_total",
            "Total backing-store API requests",
            ("service", "store", "operation", "status"),
            registry=self.registry,
        )
        self.store_latency_seconds = Histogram(
            "store_latency_seconds",
            "Backing-store request latency (seconds)",
            ("service", "store", "operation"),
            registry=self.registry,
        )

        # Mutation protocol
        self.lock_conflicts_total = Counter(
            "lock_conflicts_total",
            "Conditional writes rejected because the version token was stale",
            ("service", "path", "action"),
            registry=self.registry,
        )
        self.mutation_retries_total = Counter(
            "mutation_retries_total",
            "Retries scheduled by the mutation loops",
            ("service", "path", "action"),
            registry=self.registry,
        )
        self.retry_backoff_seconds = Histogram(
            "retry_backoff_seconds",
            "Time spent sleeping between mutation attempts (seconds)",
            ("service", "path"),
            buckets=(0.5, 1, 2, 4, 8, 16, 32, 64, 128, 256, 512, 1024),
            registry=self.registry,
        )
        self.mutations_total = Counter(
            "mutations_total",
            "Grant/revoke calls by outcome",
            ("service", "path", "action", "outcome"),
            registry=self.registry,
        )

        # Run
        self.last_run_success = Gauge(
            "last_run_success",
            "Last grant/revoke run success flag (1=ok, 0=fail)",
            ("service", "phase"),
            registry=self.registry,
        )

    def write_textfile(self, path: str) -> None:
        write_to_textfile(path, self.registry)
