"""Request payload synthesis from a model schema.

Every non-optional input becomes a zero-filled tensor of the declared
shape. Zero values come from a table keyed by wire datatype, so adding a
type is one entry rather than another special case.
"""
import math
from typing import Any, Callable, Dict, List

import numpy as np

from src.loadgen.core.exceptions import UnsupportedDatatypeError
from src.loadgen.models.schemas import (
    InferenceRequest,
    InputSpec,
    InputTensor,
    ModelSchema,
)

DATATYPE_PREFIX = "TYPE_"

# Model config names that differ from the wire name
DATATYPE_ALIASES: Dict[str, str] = {
    "STRING": "BYTES",
}

ZeroEncoder = Callable[[int], List[Any]]


def _numpy_zeros(dtype) -> ZeroEncoder:
    def encode(count: int) -> List[Any]:
        return np.zeros(count, dtype=dtype).tolist()
    return encode


DATATYPE_ENCODERS: Dict[str, ZeroEncoder] = {
    "BOOL": _numpy_zeros(np.bool_),
    "UINT8": _numpy_zeros(np.uint8),
    "UINT16": _numpy_zeros(np.uint16),
    "UINT32": _numpy_zeros(np.uint32),
    "UINT64": _numpy_zeros(np.uint64),
    "INT8": _numpy_zeros(np.int8),
    "INT16": _numpy_zeros(np.int16),
    "INT32": _numpy_zeros(np.int32),
    "INT64": _numpy_zeros(np.int64),
    "FP16": _numpy_zeros(np.float16),
    "FP32": _numpy_zeros(np.float32),
    "FP64": _numpy_zeros(np.float64),
    "BYTES": lambda count: [""] * count,
}


def wire_datatype(data_type: str) -> str:
    """TYPE_FP32 -> FP32, TYPE_STRING -> BYTES"""
    if data_type.startswith(DATATYPE_PREFIX):
        data_type = data_type[len(DATATYPE_PREFIX):]
    return DATATYPE_ALIASES.get(data_type, data_type)


def element_count(shape: List[int]) -> int:
    # math.prod of an empty shape is 1
    return math.prod(shape)


def encode_zeros(datatype: str, count: int) -> List[Any]:
    """Zero-valued flat buffer of `count` elements for a wire datatype.

    Raises:
        UnsupportedDatatypeError: no encoder is registered for `datatype`
    """
    try:
        encoder = DATATYPE_ENCODERS[datatype]
    except KeyError:
        raise UnsupportedDatatypeError(datatype) from None
    return encoder(count)


def tensor_for(spec: InputSpec, batching: bool) -> InputTensor:
    shape = [1, *spec.dims] if batching else list(spec.dims)
    datatype = wire_datatype(spec.data_type)
    return InputTensor(
        name=spec.name,
        datatype=datatype,
        shape=shape,
        data=encode_zeros(datatype, element_count(shape)),
    )


def build_request(schema: ModelSchema) -> InferenceRequest:
    """Synthesize an inference request covering every required input, in schema order."""
    return InferenceRequest(
        inputs=[tensor_for(spec, schema.batching) for spec in schema.required_inputs]
    )
