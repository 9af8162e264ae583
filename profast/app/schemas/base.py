"""
Shared schema configuration.

API payloads use camelCase field names; snake_case is accepted on input.
"""

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class APIModel(BaseModel):
    """Base schema for request and response bodies."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class ModifiedCountResponse(APIModel):
    modified_count: int


class DeletedCountResponse(APIModel):
    deleted_count: int
