"""One-shot retrieval of a model's input schema."""
from typing import Optional

import httpx
from loguru import logger
from pydantic import ValidationError

from src.loadgen.core.config import CONFIG_PATH, endpoint_url, settings
from src.loadgen.core.exceptions import ConfigurationError, SchemaFetchError
from src.loadgen.models.schemas import ModelSchema
from src.loadgen.monitoring.tracing import tracer, set_span_attributes, record_exception


def fetch_schema(
    authority: str,
    model: str,
    client: Optional[httpx.Client] = None,
    timeout: float = settings.REQUEST_TIMEOUT,
) -> ModelSchema:
    """
    GET the model config and decode it.

    A supplied client is used as is and left open. No retries: without a
    schema there is nothing to send.

    Raises:
        ConfigurationError: empty model name
        SchemaFetchError: transport error, non-200 status or undecodable body
    """
    if not model:
        raise ConfigurationError("model name must not be empty")

    url = endpoint_url(authority, CONFIG_PATH, model)

    with tracer.start_as_current_span("fetch_schema") as span:
        set_span_attributes(span, model=model, url=url)
        try:
            if client is None:
                with httpx.Client(timeout=timeout) as owned:
                    response = owned.get(url)
            else:
                response = client.get(url)
        except httpx.HTTPError as e:
            record_exception(span, e)
            raise SchemaFetchError(f"GET {url} failed: {e}") from e

        set_span_attributes(span, http_status_code=response.status_code)

        if response.status_code != 200:
            error = SchemaFetchError(
                f"GET {url} returned {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
            record_exception(span, error)
            raise error

        try:
            schema = ModelSchema.model_validate_json(response.content)
        except ValidationError as e:
            record_exception(span, e)
            raise SchemaFetchError(
                f"could not decode config of model {model}: {e}",
                status_code=response.status_code,
                body=response.text,
            ) from e

    logger.info(
        f"Fetched schema for {model}: max_batch_size={schema.max_batch_size}, "
        f"{len(schema.input)} inputs ({len(schema.required_inputs)} required)"
    )
    return schema
