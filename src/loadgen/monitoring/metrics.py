from prometheus_client import Counter, Gauge, Histogram, start_http_server
from loguru import logger

# Define Metrics
TICKS_TOTAL = Counter(
    "loadgen_ticks_total",
    "Ticks that spawned a dispatch"
)

TICKS_SKIPPED = Counter(
    "loadgen_ticks_skipped_total",
    "Ticks that did not spawn a dispatch",
    ["reason"]
)

REQUEST_COUNT = Counter(
    "loadgen_requests_total",
    "Inference requests by outcome",
    ["outcome"]
)

IN_FLIGHT = Gauge(
    "loadgen_in_flight",
    "Dispatches currently in flight"
)

REQUEST_LATENCY = Histogram(
    "loadgen_request_latency_seconds",
    "Latency from nominal tick to successful response, in seconds",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)


def start_metrics_server(port: int, addr: str = "0.0.0.0"):
    """Expose the metrics above for Prometheus scraping."""
    start_http_server(port, addr=addr)
    logger.info(f"Metrics exposed on {addr}:{port}/metrics")
