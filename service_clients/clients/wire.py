"""
Wire models: snake_case on the wire, camelCase for internal consumers.

ML services speak snake_case JSON. Gateways and resolvers in the
federation use camelCase. Every request/response model subclasses
WireModel so one definition serves both:

    model = ExtractionResponse.from_wire(resp_json)   # snake_case in
    model.to_internal()                               # camelCase out
    ExtractionRequest.from_internal(data).to_wire()   # and back

Free-form dict fields (``attributes``, ``metadata``) are passed through
untouched, so a round-trip is lossless.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
        extra="ignore",
    )

    @classmethod
    def from_wire(cls, data: Any):
        return cls.model_validate(data)

    @classmethod
    def from_internal(cls, data: Any):
        return cls.model_validate(data)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=False, exclude_none=True)

    def to_internal(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
