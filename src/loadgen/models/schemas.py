from dataclasses import dataclass
from typing import Any, List, Tuple

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt


class InputSpec(BaseModel):
    name: str
    data_type: str = Field(..., description="Declared datatype, e.g. TYPE_FP32")
    dims: Tuple[NonNegativeInt, ...] = Field(default_factory=tuple)
    optional: bool = False

    model_config = ConfigDict(frozen=True)


class ModelSchema(BaseModel):
    """Input contract of a model as served by /v2/models/{model}/config."""
    max_batch_size: NonNegativeInt = 0
    input: Tuple[InputSpec, ...] = Field(default_factory=tuple)

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "max_batch_size": 1,
                "input": [
                    {"name": "INPUT0", "data_type": "TYPE_FP32", "dims": [3], "optional": False}
                ],
            }
        }
    )

    @property
    def batching(self) -> bool:
        return self.max_batch_size >= 1

    @property
    def required_inputs(self) -> List[InputSpec]:
        return [spec for spec in self.input if not spec.optional]


class InputTensor(BaseModel):
    name: str
    datatype: str
    shape: List[int]
    data: List[Any]


class InferenceRequest(BaseModel):
    inputs: List[InputTensor]


@dataclass(frozen=True)
class CompletionRecord:
    """A successful dispatch, stamped with its nominal tick."""
    tick: float          # nominal tick instant, unix epoch seconds
    completed_at: float  # response arrival, unix epoch seconds

    @property
    def latency(self) -> float:
        return self.completed_at - self.tick

    def to_line(self) -> str:
        return f"{self.tick:.6f} {self.latency:.6f}"
