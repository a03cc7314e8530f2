"""
Access plans for memory-mapped registers.

An access plan is the target-independent description of how every field of
a register is read and written: masks, shifts, value kinds and the deferred
read-modify-write protocol. Code generators render plans as source text and
the runtime executes them against a bus.

Commit protocol for a register transaction::

    value, mask = 0, 0
    for each set(field, v):
        value = (value & ~field.mask) | ((v & field.field_mask) << field.shift)
        mask |= field.mask
    merge:      final = value | (current & ~mask)
    overwrite:  final = value
    final &= ~always_cleared_mask
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from regcraft.errors import PlannerInvariantViolation
from regcraft.model import Device, FieldDef, Peripheral, RegisterDef
from regcraft.utils import format_bit_range

logger = logging.getLogger(__name__)

STORAGE_SIZES = (8, 16, 32, 64)


class CommitMode(str, Enum):
    """Commit policy of a register transaction."""

    MERGE = "merge"  # Preserve untouched bits from the current hardware value
    OVERWRITE = "overwrite"  # Untouched bits are written as zero

    @property
    def reads_hardware(self) -> bool:
        return self is CommitMode.MERGE


class ValueKind(str, Enum):
    """Logical type of a field value."""

    BOOL = "bool"
    UINT = "uint"
    ENUM = "enum"


def storage_bits(width: int) -> int:
    """Smallest unsigned storage size (8, 16, 32, 64) holding ``width`` bits."""
    for size in STORAGE_SIZES:
        if width <= size:
            return size
    raise PlannerInvariantViolation(f"No storage type holds {width} bits")


@dataclass(frozen=True)
class EnumPlan:
    name: str
    value: int
    description: str = ""


@dataclass(frozen=True)
class FieldPlan:
    """Decode/encode plan for one field."""

    name: str
    description: str
    shift: int
    width: int
    field_mask: int
    mask: int
    kind: ValueKind
    storage_bits: int
    readable: bool
    writable: bool
    enum_values: Tuple[EnumPlan, ...] = ()

    @property
    def bit_range(self) -> str:
        return format_bit_range(self.shift, self.width)

    def decode(self, raw: int) -> int:
        """Extract this field's value from a raw register value."""
        return (raw >> self.shift) & self.field_mask

    def encode(self, raw: int, value: int) -> int:
        """Replace this field's bits in ``raw`` with ``value`` (truncated to width)."""
        return (raw & ~self.mask) | ((value & self.field_mask) << self.shift)

    def enum_name_of(self, value: int) -> Optional[str]:
        for enum_value in self.enum_values:
            if enum_value.value == value:
                return enum_value.name
        return None

    def enum_value_of(self, name: str) -> int:
        """Numeric value of an enumerated value name.

        Raises:
            KeyError: If the field has no enumerated value with that name.
        """
        for enum_value in self.enum_values:
            if enum_value.name == name:
                return enum_value.value
        raise KeyError(f"Field '{self.name}' has no enumerated value '{name}'")


@dataclass(frozen=True)
class RegisterPlan:
    """Access plan for one register: field plans plus the commit rule."""

    name: str
    description: str
    offset: int
    width: int
    register_mask: int
    always_cleared_mask: int
    reset_value: Optional[int]
    readable: bool
    writable: bool
    fields: Tuple[FieldPlan, ...]

    @property
    def byte_size(self) -> int:
        return self.width // 8

    @property
    def readable_fields(self) -> Tuple[FieldPlan, ...]:
        return tuple(f for f in self.fields if f.readable)

    @property
    def writable_fields(self) -> Tuple[FieldPlan, ...]:
        return tuple(f for f in self.fields if f.writable)

    def field(self, name: str) -> FieldPlan:
        for field in self.fields:
            if field.name == name:
                return field
        raise KeyError(f"Field '{name}' not found in register '{self.name}'")

    def accumulate(
        self, value: int, mask: int, field: FieldPlan, field_value: int
    ) -> Tuple[int, int]:
        """Fold one field write into an accumulated ``(value, mask)`` pair."""
        return field.encode(value, field_value), mask | field.mask

    def commit_value(self, value: int, mask: int, current: Optional[int] = None) -> int:
        """Final register value of a transaction.

        ``current`` is the hardware value read at commit time (merge mode) or
        None (overwrite mode).
        """
        final = value if current is None else value | (current & ~mask)
        return final & ~self.always_cleared_mask & self.register_mask


@dataclass(frozen=True)
class RegisterSlot:
    """One member of a peripheral's register block layout."""

    offset: int
    size: int  # bytes
    register: Optional[RegisterPlan] = None

    @property
    def is_padding(self) -> bool:
        return self.register is None


@dataclass(frozen=True)
class PeripheralInstance:
    """A named peripheral instance resolved to a base address by the linker."""

    name: str
    base_address: int


@dataclass(frozen=True)
class PeripheralPlan:
    """Plan for a register block shared by one or more peripheral instances."""

    name: str
    description: str
    group_name: Optional[str]
    instances: Tuple[PeripheralInstance, ...]
    registers: Tuple[RegisterPlan, ...]
    slots: Tuple[RegisterSlot, ...]

    def register(self, name: str) -> RegisterPlan:
        for reg in self.registers:
            if reg.name == name:
                return reg
        raise KeyError(f"Register '{name}' not found in peripheral '{self.name}'")

    def instance(self, name: str) -> PeripheralInstance:
        for inst in self.instances:
            if inst.name == name:
                return inst
        raise KeyError(f"Peripheral '{self.name}' has no instance '{name}'")


@dataclass(frozen=True)
class DevicePlan:
    name: str
    description: str
    address_width: int
    peripherals: Tuple[PeripheralPlan, ...]

    def peripheral(self, name: str) -> PeripheralPlan:
        """Find the plan serving a peripheral instance."""
        for plan in self.peripherals:
            if any(inst.name == name for inst in plan.instances):
                return plan
        raise KeyError(f"Peripheral '{name}' not found in device '{self.name}'")


class AccessPlanner:
    """
    Derives access plans from a validated device.

    The planner re-checks the bit-level invariants it relies on; a violation
    here means validation was bypassed or is defective, and is raised as
    ``PlannerInvariantViolation``.
    """

    def plan_device(self, device: Device) -> DevicePlan:
        by_name = {p.name: p for p in device.peripherals}
        instances: Dict[str, List[PeripheralInstance]] = {}
        bases: List[Peripheral] = []

        for periph in device.peripherals:
            base = self._shared_base(periph, by_name, set())
            if base is periph:
                bases.append(periph)
            instances.setdefault(base.name, []).append(
                PeripheralInstance(periph.name, periph.base_address)
            )

        plans = tuple(self.plan_peripheral(p, instances[p.name]) for p in bases)
        logger.debug(
            "Planned device '%s': %d register blocks, %d instances",
            device.name,
            len(plans),
            len(device.peripherals),
        )
        return DevicePlan(
            name=device.name,
            description=device.description,
            address_width=device.address_width,
            peripherals=plans,
        )

    def _shared_base(
        self, periph: Peripheral, by_name: Dict[str, Peripheral], seen: set
    ) -> Peripheral:
        """Peripheral whose register block this one reuses (itself if none)."""
        base = by_name.get(periph.derived_from) if periph.derived_from else None
        if base is None or base.registers != periph.registers or periph.name in seen:
            return periph
        return self._shared_base(base, by_name, seen | {periph.name})

    def plan_peripheral(
        self, periph: Peripheral, instances: List[PeripheralInstance]
    ) -> PeripheralPlan:
        registers = tuple(self.plan_register(periph.name, reg) for reg in periph.registers)
        return PeripheralPlan(
            name=periph.name,
            description=periph.description,
            group_name=periph.group_name,
            instances=tuple(instances),
            registers=registers,
            slots=self._layout(periph.name, registers),
        )

    @staticmethod
    def _layout(
        periph_name: str, registers: Tuple[RegisterPlan, ...]
    ) -> Tuple[RegisterSlot, ...]:
        """Order registers by offset and fill the gaps with padding slots."""
        slots = []
        offset = 0
        for reg in sorted(registers, key=lambda r: r.offset):
            if reg.offset < offset:
                raise PlannerInvariantViolation(
                    f"Register '{periph_name}.{reg.name}' at 0x{reg.offset:X} overlaps "
                    f"the register block layout ending at 0x{offset:X}"
                )
            if reg.offset % reg.byte_size:
                raise PlannerInvariantViolation(
                    f"Register '{periph_name}.{reg.name}' at 0x{reg.offset:X} is not aligned "
                    f"to its {reg.byte_size}-byte size"
                )
            if reg.offset > offset:
                slots.append(RegisterSlot(offset=offset, size=reg.offset - offset))
            slots.append(RegisterSlot(offset=reg.offset, size=reg.byte_size, register=reg))
            offset = reg.offset + reg.byte_size
        return tuple(slots)

    def plan_register(self, periph_name: str, reg: RegisterDef) -> RegisterPlan:
        qualified = f"{periph_name}.{reg.name}"
        register_mask = (1 << reg.size) - 1
        readable = reg.access.is_readable
        writable = reg.access.is_writable
        fields = tuple(self.plan_field(f, readable, writable) for f in reg.fields)

        self._check_invariants(qualified, register_mask, reg.always_cleared_mask, fields)

        return RegisterPlan(
            name=reg.name,
            description=reg.description,
            offset=reg.address_offset,
            width=reg.size,
            register_mask=register_mask,
            always_cleared_mask=reg.always_cleared_mask,
            reset_value=reg.reset_value,
            readable=readable,
            writable=writable,
            fields=fields,
        )

    @staticmethod
    def plan_field(
        field: FieldDef, register_readable: bool, register_writable: bool
    ) -> FieldPlan:
        if field.enumerated_values:
            kind = ValueKind.ENUM
        elif field.bit_width == 1:
            kind = ValueKind.BOOL
        else:
            kind = ValueKind.UINT

        field_mask = (1 << field.bit_width) - 1
        return FieldPlan(
            name=field.name,
            description=field.description,
            shift=field.bit_offset,
            width=field.bit_width,
            field_mask=field_mask,
            mask=field_mask << field.bit_offset,
            kind=kind,
            storage_bits=storage_bits(field.bit_width),
            readable=register_readable and field.access.is_readable,
            writable=register_writable and field.access.is_writable,
            enum_values=tuple(
                EnumPlan(v.name, v.value, v.description) for v in field.enumerated_values
            ),
        )

    @staticmethod
    def _check_invariants(
        qualified: str,
        register_mask: int,
        always_cleared_mask: int,
        fields: Tuple[FieldPlan, ...],
    ) -> None:
        if always_cleared_mask & ~register_mask:
            raise PlannerInvariantViolation(
                f"Always-cleared mask 0x{always_cleared_mask:X} of '{qualified}' "
                f"exceeds register mask 0x{register_mask:X}"
            )
        used = 0
        for field in fields:
            if field.mask & ~register_mask:
                raise PlannerInvariantViolation(
                    f"Mask 0x{field.mask:X} of field '{qualified}.{field.name}' "
                    f"exceeds register mask 0x{register_mask:X}"
                )
            if field.mask & used:
                raise PlannerInvariantViolation(
                    f"Mask of field '{qualified}.{field.name}' overlaps another field"
                )
            used |= field.mask


def plan_device(device: Device) -> DevicePlan:
    """Convenience function to plan a validated device."""
    return AccessPlanner().plan_device(device)
