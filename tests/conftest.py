import os
import pytest
from fastapi.testclient import TestClient

# Disable OTLP export during tests to prevent connection errors
os.environ["OTEL_EXPORTER_OTLP_ENDPOINT"] = "none"

# Import after setting the environment variable
from src.loadgen.core.config import LoadConfig
from src.loadgen.models.schemas import ModelSchema
from tests.fake_server import SIMPLE_CONFIG, create_fake_server


@pytest.fixture
def simple_schema() -> ModelSchema:
    return ModelSchema.model_validate(SIMPLE_CONFIG)


@pytest.fixture
def fake_server():
    return create_fake_server()


@pytest.fixture
def sync_client(fake_server):
    with TestClient(fake_server) as c:
        yield c


@pytest.fixture
def make_config():
    """LoadConfig with fast retries and no duration limit by default."""
    def _make(**overrides) -> LoadConfig:
        values = {
            "authority": "testserver",
            "model": "simple",
            "rate": 10.0,
            "retry_base_delay": 0.0,
            "retry_max_delay": 0.0,
        }
        values.update(overrides)
        return LoadConfig(**values)
    return _make

