import asyncio
import io
import os
import signal

import pytest

from src.loadgen import main as entry
from src.loadgen.core.exceptions import SchemaFetchError
from src.loadgen.models.schemas import ModelSchema
from src.loadgen.services import driver as driver_module
from tests.fake_server import SIMPLE_CONFIG, asgi_client, create_fake_server


@pytest.fixture
def served(monkeypatch):
    """Route the entry point's schema fetch and load run into a fake server."""
    app = create_fake_server()

    def fake_fetch_schema(authority, model, timeout=None):
        return ModelSchema.model_validate(SIMPLE_CONFIG)

    async def fake_run_load(schema, config, sink, on_start=None):
        async with asgi_client(app) as client:
            return await driver_module.run_load(schema, config, sink, client=client, on_start=on_start)

    monkeypatch.setattr(entry, "fetch_schema", fake_fetch_schema)
    monkeypatch.setattr(entry, "run_load", fake_run_load)
    return app


def test_prints_one_line_per_completion(served):
    out = io.StringIO()

    code = entry.main(["simple", "20", "--duration", "0.3"], out=out)

    assert code == entry.EXIT_OK
    lines = out.getvalue().splitlines()
    assert len(lines) >= 2
    for line in lines:
        tick, latency = (float(v) for v in line.split())
        assert tick > 0
        assert latency >= 0


@pytest.mark.parametrize("signum", [signal.SIGINT, signal.SIGTERM])
def test_signal_stops_run_cleanly(served, monkeypatch, signum):
    real_install = entry.install_signal_handlers

    def install_then_signal(driver):
        real_install(driver)
        asyncio.get_running_loop().call_later(0.3, os.kill, os.getpid(), signum)

    monkeypatch.setattr(entry, "install_signal_handlers", install_then_signal)
    out = io.StringIO()

    code = entry.main(["simple", "20"], out=out)

    assert code == entry.EXIT_OK
    assert len(out.getvalue().splitlines()) >= 2


def test_inference_500_is_fatal(served):
    served.state.infer_status = 500
    out = io.StringIO()

    code = entry.main(["simple", "20", "--duration", "1"], out=out)

    assert code == entry.EXIT_FATAL
    assert out.getvalue() == ""


def test_non_numeric_rate_exits(capsys):
    with pytest.raises(SystemExit) as exc_info:
        entry.main(["simple", "fast"])

    assert exc_info.value.code == 2


@pytest.mark.parametrize("rate", ["0", "-5"])
def test_non_positive_rate_rejected(rate):
    assert entry.main(["simple", rate]) == entry.EXIT_USAGE


def test_schema_fetch_failure_is_fatal(monkeypatch):
    def failing_fetch(authority, model, timeout=None):
        raise SchemaFetchError(
            f"GET http://{authority}/v2/models/{model}/config returned 404",
            status_code=404,
            body="unknown model",
        )

    monkeypatch.setattr(entry, "fetch_schema", failing_fetch)

    assert entry.main(["-a", "localhost:1", "simple", "10"]) == entry.EXIT_FATAL


def test_parser_defaults():
    args = entry.build_parser().parse_args(["densenet", "2.5"])

    assert args.model == "densenet"
    assert args.rate == 2.5
    assert args.authority == "localhost:8000"
    assert args.on_status_error is None


def test_parser_rejects_unknown_action():
    with pytest.raises(SystemExit):
        entry.build_parser().parse_args(["m", "1", "--on-status-error", "ignore"])


class RecordingTracerProvider:
    def __init__(self):
        self.shutdown_calls = 0

    def shutdown(self):
        self.shutdown_calls += 1


class TestTracerShutdown:
    """Batched spans are flushed however the run ends."""

    def test_after_clean_run(self, served, monkeypatch):
        provider = RecordingTracerProvider()
        monkeypatch.setattr(entry, "setup_tracing", lambda: provider)

        code = entry.main(["simple", "20", "--duration", "0.2"], out=io.StringIO())

        assert code == entry.EXIT_OK
        assert provider.shutdown_calls == 1

    def test_after_fatal_run(self, served, monkeypatch):
        served.state.infer_status = 500
        provider = RecordingTracerProvider()
        monkeypatch.setattr(entry, "setup_tracing", lambda: provider)

        code = entry.main(["simple", "20", "--duration", "1"], out=io.StringIO())

        assert code == entry.EXIT_FATAL
        assert provider.shutdown_calls == 1
