import json
import logging
import sys

import pytest
from loguru import logger

from src.loadgen.core.config import settings
from src.loadgen.core.logging import get_trace_id, setup_logging


@pytest.fixture
def restore_logging():
    yield
    logger.remove()
    logger.add(sys.stderr)


def test_production_logs_are_json(monkeypatch, capsys, restore_logging):
    monkeypatch.setattr(settings, "ENV", "production")
    setup_logging(debug=False)

    logger.info('posted {"inputs": []}')

    entry = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
    assert entry["level"] == "INFO"
    assert entry["message"] == 'posted {"inputs": []}'
    assert entry["service"] == settings.PROJECT_NAME
    assert entry["trace_id"] == "no-trace"


def test_debug_level(monkeypatch, capsys, restore_logging):
    monkeypatch.setattr(settings, "ENV", "dev")
    setup_logging(debug=False)
    logger.debug("hidden")
    assert "hidden" not in capsys.readouterr().err

    setup_logging(debug=True)
    logger.debug("shown")
    assert "shown" in capsys.readouterr().err


def test_httpx_logging_routed_to_loguru(monkeypatch, capsys, restore_logging):
    monkeypatch.setattr(settings, "ENV", "dev")
    setup_logging(debug=False)

    logging.getLogger("httpx").warning("pool exhausted")

    assert "pool exhausted" in capsys.readouterr().err


def test_trace_id_without_span():
    assert get_trace_id() == "no-trace"
