"""
Pydantic-based device models for memory-mapped register descriptions.

For runtime register access (hardware I/O), use regcraft.runtime.register.
"""

from .base import FrozenModel, RegCraftBaseModel, StrictModel
from .device import (
    SUPPORTED_REGISTER_SIZES,
    AccessType,
    Device,
    EnumeratedValue,
    FieldDef,
    Peripheral,
    RegisterDef,
)

__all__ = [
    # Base
    "RegCraftBaseModel",
    "FrozenModel",
    "StrictModel",
    # Device
    "AccessType",
    "Device",
    "Peripheral",
    "RegisterDef",
    "FieldDef",
    "EnumeratedValue",
    "SUPPORTED_REGISTER_SIZES",
]
