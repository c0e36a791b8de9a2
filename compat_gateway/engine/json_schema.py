"""
The JSON Schema subset the engine accepts for function tool parameters.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _SchemaBase(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    description: Optional[str] = None


class BooleanSchema(_SchemaBase):
    type: Literal["boolean"]


class StringSchema(_SchemaBase):
    type: Literal["string"]
    enum: Optional[List[Any]] = None


class NumberSchema(_SchemaBase):
    type: Literal["number", "integer"]


class ArraySchema(_SchemaBase):
    type: Literal["array"]
    items: JsonSchema


class ObjectSchema(_SchemaBase):
    type: Literal["object"]
    properties: Dict[str, JsonSchema] = Field(default_factory=dict)
    required: Optional[List[str]] = None
    additional_properties: Optional[Union[bool, JsonSchema]] = Field(
        default=None, alias="additionalProperties"
    )


JsonSchema = Annotated[
    Union[BooleanSchema, StringSchema, NumberSchema, ArraySchema, ObjectSchema],
    Field(discriminator="type"),
]

ArraySchema.model_rebuild()
ObjectSchema.model_rebuild()

_adapter: TypeAdapter = TypeAdapter(JsonSchema)


def parse_json_schema(value: Any) -> Union[BooleanSchema, StringSchema, NumberSchema, ArraySchema, ObjectSchema]:
    """Parse a (sanitized) schema value; raises ``pydantic.ValidationError`` when it does not fit."""
    return _adapter.validate_python(value)


def empty_object_schema() -> ObjectSchema:
    return ObjectSchema(type="object")
