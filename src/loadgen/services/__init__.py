"""Schema fetching, payload synthesis and the load driver."""

from .schema_fetcher import fetch_schema

from .payload import (
    DATATYPE_ENCODERS,
    build_request,
    encode_zeros,
    tensor_for,
    wire_datatype,
)

from .driver import (
    LoadDriver,
    run_load,
)

__all__ = [
    # Schema
    "fetch_schema",
    # Payload synthesis
    "DATATYPE_ENCODERS",
    "build_request",
    "encode_zeros",
    "tensor_for",
    "wire_datatype",
    # Load driver
    "LoadDriver",
    "run_load",
]
