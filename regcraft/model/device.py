"""
Device model definitions.

These are frozen Pydantic models produced by the SVD device builder and
consumed by the layout validator and the accessor planner.
For runtime register access, use regcraft.runtime.register classes.

Naming convention:
- Register and field classes use the *Def suffix (RegisterDef, FieldDef) to
    indicate they are definitions, not the runtime ``Register`` accessor.
"""

from enum import Enum
from typing import Any, Optional, Tuple

from pydantic import Field, ValidationInfo, field_validator

from regcraft.utils import format_bit_range

from .base import FrozenModel

SUPPORTED_REGISTER_SIZES = (8, 16, 32, 64)


class AccessType(str, Enum):
    """Register/field access types."""

    READ_ONLY = "read-only"
    WRITE_ONLY = "write-only"
    READ_WRITE = "read-write"

    @classmethod
    def normalize(cls, value: str) -> Optional["AccessType"]:
        """Normalize various access type representations."""
        normalized_map = {
            "ro": cls.READ_ONLY,
            "read-only": cls.READ_ONLY,
            "readonly": cls.READ_ONLY,
            "wo": cls.WRITE_ONLY,
            "write-only": cls.WRITE_ONLY,
            "writeonly": cls.WRITE_ONLY,
            "writeonce": cls.WRITE_ONLY,
            "rw": cls.READ_WRITE,
            "read-write": cls.READ_WRITE,
            "readwrite": cls.READ_WRITE,
            "read-writeonce": cls.READ_WRITE,
        }
        return normalized_map.get(value.strip().lower())

    @classmethod
    def from_string(cls, value: str) -> "AccessType":
        """Parse access value from enum value or alias string.

        Raises:
            ValueError: If the access string is not recognized.
        """
        if isinstance(value, cls):
            return value
        access = cls.normalize(value)
        if access is None:
            raise ValueError(f"Unknown access type '{value}'")
        return access

    @property
    def is_readable(self) -> bool:
        return self is not AccessType.WRITE_ONLY

    @property
    def is_writable(self) -> bool:
        return self is not AccessType.READ_ONLY


class EnumeratedValue(FrozenModel):
    """Named value of an enumerated field."""

    name: str = Field(..., description="Value name")
    value: int = Field(..., description="Numeric value", ge=0)
    description: str = Field(default="", description="Value description")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str, info: ValidationInfo) -> str:
        """Ensure names are not empty. Strips whitespace automatically."""
        v = v.strip()
        if not v:
            raise ValueError(f"{info.field_name} cannot be empty")
        return v


class FieldDef(FrozenModel):
    """
    Bit field definition within a register.

    Represents a named, contiguous range of bits carrying one logical value.
    """

    name: str = Field(..., description="Bit field name")
    description: str = Field(default="", description="Field description")
    bit_offset: int = Field(..., description="Starting bit position (LSB = 0)", ge=0)
    bit_width: int = Field(..., description="Number of bits", ge=1)
    access: AccessType = Field(default=AccessType.READ_WRITE, description="Access type")
    enum_name: Optional[str] = Field(default=None, description="Enumeration name")
    enumerated_values: Tuple[EnumeratedValue, ...] = Field(
        default=(), description="Enumerated values"
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str, info: ValidationInfo) -> str:
        """Ensure names are not empty. Strips whitespace automatically."""
        v = v.strip()
        if not v:
            raise ValueError(f"{info.field_name} cannot be empty")
        return v

    @field_validator("access", mode="before")
    @classmethod
    def normalize_access(cls, v: Any) -> Any:
        """Normalize access type using AccessType.from_string."""
        if isinstance(v, str):
            return AccessType.from_string(v)
        return v

    @property
    def mask(self) -> int:
        """Get the bit mask for this field within the register."""
        return ((1 << self.bit_width) - 1) << self.bit_offset

    @property
    def max_value(self) -> int:
        """Get the maximum value that can be stored in this field."""
        return (1 << self.bit_width) - 1

    @property
    def msb(self) -> int:
        return self.bit_offset + self.bit_width - 1

    @property
    def bit_range(self) -> str:
        """Get bit range as string (e.g. [7:0])."""
        return format_bit_range(self.bit_offset, self.bit_width)


class RegisterDef(FrozenModel):
    """
    Register definition within a peripheral.

    The address offset is relative to the peripheral base address.
    """

    name: str = Field(..., description="Register name")
    description: str = Field(default="", description="Register description")
    address_offset: int = Field(..., description="Offset from peripheral base", ge=0)
    size: int = Field(default=32, description="Register width in bits")
    access: AccessType = Field(default=AccessType.READ_WRITE, description="Default access type")
    reset_value: Optional[int] = Field(default=None, description="Reset value", ge=0)
    always_cleared_mask: int = Field(
        default=0, description="Bits forced to zero on every commit", ge=0
    )
    fields: Tuple[FieldDef, ...] = Field(default=(), description="Bit fields")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str, info: ValidationInfo) -> str:
        """Ensure names are not empty. Strips whitespace automatically."""
        v = v.strip()
        if not v:
            raise ValueError(f"{info.field_name} cannot be empty")
        return v

    @field_validator("access", mode="before")
    @classmethod
    def normalize_access(cls, v: Any) -> Any:
        """Normalize access type using AccessType.from_string."""
        if isinstance(v, str):
            return AccessType.from_string(v)
        return v

    @field_validator("size")
    @classmethod
    def validate_size(cls, v: int) -> int:
        if v not in SUPPORTED_REGISTER_SIZES:
            raise ValueError(
                f"Register size must be one of {SUPPORTED_REGISTER_SIZES}, got {v}"
            )
        return v

    @property
    def byte_size(self) -> int:
        return self.size // 8

    @property
    def end_offset(self) -> int:
        """First byte offset past this register."""
        return self.address_offset + self.byte_size

    @property
    def byte_range(self) -> str:
        return f"[0x{self.address_offset:X}:0x{self.end_offset - 1:X}]"

    def get_field(self, name: str) -> Optional[FieldDef]:
        for field in self.fields:
            if field.name == name:
                return field
        return None


class Peripheral(FrozenModel):
    """Addressable hardware block with one base address and a set of registers."""

    name: str = Field(..., description="Peripheral name")
    description: str = Field(default="", description="Peripheral description")
    group_name: Optional[str] = Field(default=None, description="Peripheral group")
    base_address: int = Field(..., description="Base address", ge=0)
    derived_from: Optional[str] = Field(
        default=None, description="Name of the peripheral this one is derived from"
    )
    registers: Tuple[RegisterDef, ...] = Field(default=(), description="Registers")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str, info: ValidationInfo) -> str:
        """Ensure names are not empty. Strips whitespace automatically."""
        v = v.strip()
        if not v:
            raise ValueError(f"{info.field_name} cannot be empty")
        return v

    def get_register(self, name: str) -> Optional[RegisterDef]:
        for reg in self.registers:
            if reg.name == name:
                return reg
        return None

    def register_address(self, register: RegisterDef) -> int:
        """Absolute address of one of this peripheral's registers."""
        return self.base_address + register.address_offset


class Device(FrozenModel):
    """Complete device: an ordered sequence of peripherals."""

    name: str = Field(..., description="Device name")
    description: str = Field(default="", description="Device description")
    address_width: int = Field(
        default=32, description="Address bus width in bits", ge=8, le=64
    )
    peripherals: Tuple[Peripheral, ...] = Field(default=(), description="Peripherals")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str, info: ValidationInfo) -> str:
        """Ensure names are not empty. Strips whitespace automatically."""
        v = v.strip()
        if not v:
            raise ValueError(f"{info.field_name} cannot be empty")
        return v

    def get_peripheral(self, name: str) -> Optional[Peripheral]:
        for periph in self.peripherals:
            if periph.name == name:
                return periph
        return None

    @property
    def total_registers(self) -> int:
        return sum(len(p.registers) for p in self.peripherals)
