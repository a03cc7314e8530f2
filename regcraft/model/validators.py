"""
Layout validation for device models.

Checks the invariants Pydantic cannot express on a single model:
bit-field overlap and containment, register overlap and alignment, address
range and name uniqueness within each device/peripheral/register scope.

The first violation raises ``LayoutConflict``; a conflicting model is
rejected wholesale. Non-fatal findings are collected as warnings.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple

from regcraft.errors import LayoutConflict
from regcraft.utils import format_bit_range, identifier_key

from .device import Device, FieldDef, Peripheral, RegisterDef

logger = logging.getLogger(__name__)


@dataclass
class Diagnostic:
    """Validation finding with context."""

    severity: str  # 'error', 'warning', 'info'
    message: str
    location: str  # Where the finding occurred (e.g., 'peripheral:SPI1:register:CR1')
    suggestion: str = ""  # Optional fix suggestion


class LayoutValidator:
    """
    Device layout validator.

    Performs semantic validation beyond what Pydantic provides. Validation
    is a pure function of the device: running it twice yields the same
    verdict and the same warnings.
    """

    def __init__(self, device: Device):
        self.device = device
        self.warnings: List[Diagnostic] = []

    def validate(self) -> Device:
        """
        Run all validation checks.

        Returns:
            The validated device, unchanged.

        Raises:
            LayoutConflict: On the first invariant violation.
        """
        self.warnings.clear()

        self.validate_peripheral_names()
        for periph in self.device.peripherals:
            self.validate_peripheral(periph)

        for warning in self.warnings:
            logger.warning("%s: %s", warning.location, warning.message)
        return self.device

    def validate_peripheral_names(self) -> None:
        """Peripheral names must be unique within the device (case-insensitive)."""
        self._check_duplicates(
            [
                (p.name, f"peripheral {p.name}", f"@0x{p.base_address:X}")
                for p in self.device.peripherals
            ],
            "Duplicate peripheral name",
        )

    def validate_peripheral(self, periph: Peripheral) -> None:
        """Validate one peripheral and every register in it."""
        self._check_duplicates(
            [
                (r.name, f"register {periph.name}.{r.name}", r.byte_range)
                for r in periph.registers
            ],
            "Duplicate register name",
        )
        self._check_register_overlap(periph)
        self._check_address_space(periph)

        for reg in periph.registers:
            self.validate_register(periph, reg)
            self._check_alignment(periph, reg)

    def validate_register(self, periph: Peripheral, reg: RegisterDef) -> None:
        """Validate the fields and register-level values of one register."""
        qualified = f"{periph.name}.{reg.name}"
        self._check_duplicates(
            [(f.name, f"field {qualified}.{f.name}", f.bit_range) for f in reg.fields],
            "Duplicate field name",
        )

        register_label = f"register {qualified}"
        register_bits = format_bit_range(0, reg.size)
        for field in reg.fields:
            if field.bit_offset + field.bit_width > reg.size:
                raise LayoutConflict(
                    f"field {qualified}.{field.name}",
                    field.bit_range,
                    register_label,
                    register_bits,
                    "Field extends beyond register width",
                )
            self._check_enumerated_values(qualified, field)

        self._check_field_overlap(qualified, reg.fields)
        self._check_register_values(periph, reg)

    def _check_duplicates(self, entries: List[Tuple[str, str, str]], reason: str) -> None:
        """Raise on the first pair of entries whose names collide as identifiers."""
        seen: Dict[str, Tuple[str, str]] = {}
        for name, label, span in entries:
            key = identifier_key(name)
            if key in seen:
                first_label, first_span = seen[key]
                raise LayoutConflict(first_label, first_span, label, span, reason)
            seen[key] = (label, span)

    @staticmethod
    def _check_field_overlap(qualified: str, fields: Tuple[FieldDef, ...]) -> None:
        for i, field1 in enumerate(fields):
            for field2 in fields[i + 1 :]:
                if field1.mask & field2.mask:
                    raise LayoutConflict(
                        f"field {qualified}.{field1.name}",
                        field1.bit_range,
                        f"field {qualified}.{field2.name}",
                        field2.bit_range,
                        "Overlapping fields",
                    )

    @staticmethod
    def _registers_overlap(reg1: RegisterDef, reg2: RegisterDef) -> bool:
        """Check if two registers overlap."""
        return not (
            reg1.end_offset <= reg2.address_offset or reg2.end_offset <= reg1.address_offset
        )

    def _check_register_overlap(self, periph: Peripheral) -> None:
        for i, reg1 in enumerate(periph.registers):
            for reg2 in periph.registers[i + 1 :]:
                if self._registers_overlap(reg1, reg2):
                    raise LayoutConflict(
                        f"register {periph.name}.{reg1.name}",
                        reg1.byte_range,
                        f"register {periph.name}.{reg2.name}",
                        reg2.byte_range,
                        "Overlapping registers",
                    )

    def _check_address_space(self, periph: Peripheral) -> None:
        """Every register must be addressable within the device address width."""
        limit = 1 << self.device.address_width
        space = f"address space of device {self.device.name}"
        space_range = f"[0x0:0x{limit - 1:X}]"
        if periph.base_address >= limit:
            raise LayoutConflict(
                f"peripheral {periph.name}",
                f"@0x{periph.base_address:X}",
                space,
                space_range,
                "Peripheral base address out of range",
            )
        for reg in periph.registers:
            if periph.base_address + reg.end_offset > limit:
                raise LayoutConflict(
                    f"register {periph.name}.{reg.name}",
                    f"@0x{periph.register_address(reg):X}",
                    space,
                    space_range,
                    "Register address out of range",
                )

    @staticmethod
    def _check_enumerated_values(qualified: str, field: FieldDef) -> None:
        seen: Dict[str, str] = {}
        values: Dict[int, str] = {}
        for enum_value in field.enumerated_values:
            label = f"value {qualified}.{field.name}.{enum_value.name}"
            if enum_value.value in values:
                raise LayoutConflict(
                    values[enum_value.value],
                    f"= {enum_value.value}",
                    label,
                    f"= {enum_value.value}",
                    "Duplicate enumerated value",
                )
            values[enum_value.value] = label
            if enum_value.value > field.max_value:
                raise LayoutConflict(
                    label,
                    f"= {enum_value.value}",
                    f"field {qualified}.{field.name}",
                    field.bit_range,
                    "Enumerated value does not fit field width",
                )
            key = identifier_key(enum_value.name)
            if key in seen:
                raise LayoutConflict(
                    seen[key], "", label, "", "Duplicate enumerated value name"
                )
            seen[key] = label

    def _check_register_values(self, periph: Peripheral, reg: RegisterDef) -> None:
        """Reset value and always-cleared mask must fit the register width."""
        qualified = f"{periph.name}.{reg.name}"
        register_label = f"register {qualified}"
        register_bits = format_bit_range(0, reg.size)
        register_mask = (1 << reg.size) - 1

        if reg.reset_value is not None and reg.reset_value & ~register_mask:
            raise LayoutConflict(
                f"reset value of {qualified}",
                f"0x{reg.reset_value:X}",
                register_label,
                register_bits,
                "Reset value does not fit register width",
            )
        if reg.always_cleared_mask & ~register_mask:
            raise LayoutConflict(
                f"always-cleared mask of {qualified}",
                f"0x{reg.always_cleared_mask:X}",
                register_label,
                register_bits,
                "Always-cleared mask does not fit register width",
            )

        if not reg.always_cleared_mask:
            return

        location = f"peripheral:{periph.name}:register:{reg.name}"
        self.warnings.append(
            Diagnostic(
                severity="warning",
                message=f"Register '{reg.name}' forces bits 0x{reg.always_cleared_mask:X} "
                "to zero on every commit",
                location=location,
                suggestion="Confirm the self-clearing behavior against the datasheet",
            )
        )
        for field in reg.fields:
            if field.access.is_writable and field.mask & reg.always_cleared_mask:
                self.warnings.append(
                    Diagnostic(
                        severity="warning",
                        message=f"Always-cleared mask clears writable field "
                        f"'{field.name}' {field.bit_range} on every commit",
                        location=location,
                        suggestion="Remove the field bits from alwaysClearedMask "
                        "unless the field is a strobe",
                    )
                )

    @staticmethod
    def _check_alignment(periph: Peripheral, reg: RegisterDef) -> None:
        """A register must sit on a multiple of its own size (its storage alignment)."""
        alignment = reg.byte_size
        if reg.address_offset % alignment:
            slot = reg.address_offset - reg.address_offset % alignment
            raise LayoutConflict(
                f"register {periph.name}.{reg.name}",
                reg.byte_range,
                f"{alignment}-byte aligned slot",
                f"[0x{slot:X}:0x{slot + alignment - 1:X}]",
                "Register not aligned to its size",
            )

    def get_diagnostic_summary(self) -> str:
        """Get human-readable summary of the collected warnings."""
        lines = []

        if self.warnings:
            lines.append(f"\n{len(self.warnings)} Warning(s):")
            for warn in self.warnings:
                lines.append(f"  [{warn.severity.upper()}] {warn.location}: {warn.message}")
                if warn.suggestion:
                    lines.append(f"           → {warn.suggestion}")
        else:
            lines.append("\n✓ All validation checks passed")

        return "\n".join(lines)


def validate_device(device: Device) -> Tuple[Device, List[Diagnostic]]:
    """
    Convenience function to validate a device.

    Args:
        device: Device to validate

    Returns:
        Tuple of (device, warnings)

    Raises:
        LayoutConflict: If the device violates a layout invariant.
    """
    validator = LayoutValidator(device)
    validator.validate()
    return device, list(validator.warnings)
