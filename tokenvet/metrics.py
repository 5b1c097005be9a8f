import logging
import threading

from prometheus_client import Counter, Histogram, start_http_server


_server_started = False
_server_lock = threading.Lock()


def start_metrics_server(port: int) -> None:
    global _server_started
    if _server_started:
        return
    with _server_lock:
        if _server_started:
            return
        try:
            start_http_server(port)
            logging.info(f"📈 Metrics on :{port}")
        except OSError as e:
            # Best-effort; metrics are optional in dev
            logging.warning(f"Metrics server not started on :{port}: {e}")
        _server_started = True


RECORDS_INGESTED = Counter(
    "tokenvet_records_ingested_total",
    "Canonical records upserted by the ingestion cycle",
    ["chain", "outcome"],  # outcome: created | updated
)

CANDIDATES_DROPPED = Counter(
    "tokenvet_candidates_dropped_total",
    "Provider candidates discarded during merge",
    ["reason"],
)

VETTING_RESULTS = Counter(
    "tokenvet_vetting_results_total",
    "Scored tokens by eligible tier",
    ["tier"],
)

ALERTS_RAISED = Counter(
    "tokenvet_alerts_total",
    "Monitoring alerts by trigger type",
    ["trigger_type", "severity"],
)

PROVIDER_FAILURES = Counter(
    "tokenvet_provider_failures_total",
    "Provider calls that ended without a usable response",
    ["provider"],
)

CYCLE_SECONDS = Histogram(
    "tokenvet_cycle_seconds",
    "Wall time of one pipeline cycle",
    ["pipeline"],
    buckets=(0.5, 1, 2, 5, 10, 30, 60, 120, 300, 600, 1800),
)
