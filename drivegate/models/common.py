from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake-case fields in Python, camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ErrorResponse(BaseModel):
    error: str
    error_code: str


class StatusResponse(BaseModel):
    upstream_public: bool
    upstream_oauth: bool
    durable_identity_backend: bool
    cache_entries: int
