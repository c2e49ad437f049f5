"""Command-line entry point.

    triton-loadgen [-a HOST:PORT] MODEL RATE

Prints `<tick-epoch-seconds> <latency-seconds>` per successful request on
stdout; logs go to stderr.
"""
import argparse
import asyncio
import signal
import sys
from typing import List, Optional, TextIO

from loguru import logger
from pydantic import ValidationError

from src.loadgen.core.config import ErrorAction, LoadConfig, settings
from src.loadgen.core.exceptions import LoadGeneratorError, SchemaFetchError
from src.loadgen.core.logging import setup_logging
from src.loadgen.models.schemas import CompletionRecord, ModelSchema
from src.loadgen.monitoring.metrics import start_metrics_server
from src.loadgen.monitoring.tracing import setup_tracing
from src.loadgen.services.driver import LoadDriver, run_load
from src.loadgen.services.schema_fetcher import fetch_schema

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="triton-loadgen",
        description="Send zero-filled inference requests to a model at a fixed rate.",
    )
    parser.add_argument("model", help="model name")
    parser.add_argument("rate", type=float, help="target rate in requests per second")
    parser.add_argument(
        "-a", "--authority",
        default=settings.AUTHORITY,
        help=f"inference server authority [{settings.AUTHORITY}]",
    )
    parser.add_argument("--queue-size", type=int, help="completion queue capacity")
    parser.add_argument("--max-in-flight", type=int, help="in-flight dispatch limit, 0 = unbounded")
    parser.add_argument("--timeout", type=float, dest="request_timeout", help="request timeout in seconds")
    parser.add_argument(
        "--on-transport-error",
        choices=[action.value for action in ErrorAction],
        help="action on connection failures",
    )
    parser.add_argument(
        "--on-status-error",
        choices=[action.value for action in ErrorAction],
        help="action on non-200 responses",
    )
    parser.add_argument("--duration", type=float, help="stop after this many seconds")
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=settings.METRICS_PORT,
        help="expose Prometheus metrics on this port",
    )
    parser.add_argument("--debug", action="store_true", default=settings.DEBUG)
    return parser


def make_sink(out: TextIO):
    def sink(record: CompletionRecord):
        out.write(record.to_line() + "\n")
        out.flush()
    return sink


def install_signal_handlers(driver: LoadDriver):
    """SIGINT/SIGTERM stop the driver instead of killing the process."""
    loop = asyncio.get_running_loop()

    def shutdown_handler(signum):
        logger.warning(f"Received signal {signum}, stopping load...")
        driver.stop()

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, shutdown_handler, signum)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform / not the main thread
            logger.debug(f"Cannot install handler for signal {signum}")


async def _run(schema: ModelSchema, config: LoadConfig, out: TextIO) -> int:
    return await run_load(schema, config, make_sink(out), on_start=install_signal_handlers)


def main(argv: Optional[List[str]] = None, out: TextIO = sys.stdout) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(debug=args.debug)

    try:
        config = LoadConfig.from_settings(
            model=args.model,
            rate=args.rate,
            authority=args.authority,
            queue_size=args.queue_size,
            max_in_flight=args.max_in_flight,
            request_timeout=args.request_timeout,
            on_transport_error=args.on_transport_error,
            on_status_error=args.on_status_error,
            duration=args.duration,
        )
    except ValidationError as e:
        logger.error(f"Invalid configuration: {e}")
        return EXIT_USAGE

    if args.metrics_port:
        start_metrics_server(args.metrics_port)
    tracer_provider = setup_tracing()

    try:
        schema = fetch_schema(config.authority, config.model, timeout=config.request_timeout)
        asyncio.run(_run(schema, config, out))
    except SchemaFetchError as e:
        logger.critical(f"{e}\n{e.body}" if e.body else str(e))
        return EXIT_FATAL
    except LoadGeneratorError as e:
        logger.critical(str(e))
        return EXIT_FATAL
    finally:
        if tracer_provider is not None:
            # Flush spans still queued in the batch processor
            tracer_provider.shutdown()

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
