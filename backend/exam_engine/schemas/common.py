"""Shared / generic schemas."""

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class ErrorResponse(BaseModel):
    """Standard error envelope returned for every failed operation."""

    success: bool = False
    error: str
    error_code: str


class CamelModel(BaseModel):
    """Base for payloads exchanged in camelCase with the exam client."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "from_attributes": True,
    }


class SuccessModel(CamelModel):
    success: bool = True
