"""Shared schema base classes for API payloads and persisted records."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake_case attributes serialized with the camelCase keys the mobile UI expects."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FrozenCamelModel(CamelModel):
    """Immutable value object variant of CamelModel."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)
