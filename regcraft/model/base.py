"""
Base models for device description metadata.

Provides shared base models with centralized configuration for all
device model classes. Using these base models eliminates repetitive
``model_config`` declarations across the codebase.

Architecture Decision:
    Device models are frozen. The model is built once per invocation and
    then only read by the validator, the planner and the generator, so
    mutation after construction always indicates a bug.
"""

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class RegCraftBaseModel(BaseModel):
    """Base model with shared configuration for all device models.

    Provides camelCase aliasing and allows field population by either
    alias or Python name.
    """

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
    }


class FrozenModel(RegCraftBaseModel):
    """Immutable model that forbids unknown fields.

    Sequences on subclasses are declared as tuples so the whole tree stays
    immutable and hashable.
    """

    model_config = {
        **RegCraftBaseModel.model_config,
        "frozen": True,
        "extra": "forbid",
    }


class StrictModel(RegCraftBaseModel):
    """Mutable model that forbids unknown fields (configuration objects)."""

    model_config = {
        **RegCraftBaseModel.model_config,
        "validate_assignment": True,
        "extra": "forbid",
    }
