"""
Rust register accessor generator.

Renders a device access plan into one Rust module:

    pub mod <device> {
        pub mod <peripheral> {
            use volatile_cell::VolatileCell;
            #[repr(C)] pub struct RegisterBlock { ... }
            // per register: storage, snapshot, transaction and enum types
            extern "C" { #[link_name = "..."] pub static <INSTANCE>: RegisterBlock; }
        }
    }

Peripheral base addresses are not compiled in; each instance is an extern
static resolved by the linker (see ``generate_link_map``).
"""

import logging
import os
from typing import Any, Dict, List, Optional, Set

from regcraft.config import GeneratorConfig
from regcraft.errors import LayoutConflict
from regcraft.generator.base_generator import BaseGenerator
from regcraft.generator.naming import RustNamingScheme
from regcraft.planner import (
    DevicePlan,
    FieldPlan,
    PeripheralPlan,
    RegisterPlan,
    ValueKind,
)

logger = logging.getLogger(__name__)

REGISTER_BLOCK = "RegisterBlock"


class _Scope:
    """Identifiers declared in one Rust namespace, mapped to the element declaring each."""

    def __init__(self, name: str, predeclared: Optional[Dict[str, str]] = None):
        self.name = name
        self.owners: Dict[str, str] = dict(predeclared or {})

    def declare(self, ident: str, owner: str) -> None:
        if ident in self.owners:
            raise LayoutConflict(
                self.owners[ident],
                f"as `{ident}`",
                owner,
                f"as `{ident}`",
                f"Colliding Rust identifier in {self.name}",
            )
        self.owners[ident] = owner


class RustGenerator(BaseGenerator):
    """Rust generator for memory-mapped register accessors."""

    def __init__(
        self, template_dir: Optional[str] = None, config: Optional[GeneratorConfig] = None
    ):
        if template_dir is None:
            template_dir = os.path.join(os.path.dirname(__file__), "templates")
        super().__init__(template_dir, config)
        self.naming = RustNamingScheme(self.config.link_prefix)

    def source_filename(self, plan: DevicePlan) -> str:
        return f"{self.naming.module_name(plan.name)}.rs"

    @staticmethod
    def _uint(bits: int) -> str:
        return f"u{bits}"

    def _field_type(self, reg: RegisterPlan, field: FieldPlan) -> str:
        if field.kind is ValueKind.ENUM:
            return f"Option<{self.naming.enum_type(reg.name, field.name)}>"
        if field.kind is ValueKind.BOOL:
            return "bool"
        return self._uint(field.storage_bits)

    def _prepare_field(self, reg: RegisterPlan, field: FieldPlan) -> Dict[str, Any]:
        digits = max(1, (field.width + 3) // 4)
        return {
            "name": field.name,
            "description": field.description,
            "bit_range": field.bit_range,
            "getter": self.naming.getter_name(field.name),
            "setter": self.naming.setter_name(field.name),
            "kind": field.kind.value,
            "value_type": self._field_type(reg, field),
            "setter_type": (
                self.naming.enum_type(reg.name, field.name)
                if field.kind is ValueKind.ENUM
                else self._field_type(reg, field)
            ),
            "storage": self._uint(field.storage_bits),
            "enum_type": (
                self.naming.enum_type(reg.name, field.name)
                if field.kind is ValueKind.ENUM
                else None
            ),
            "shift": field.shift,
            "field_mask": f"0x{field.field_mask:0{digits}X}",
            "readable": field.readable,
            "writable": field.writable,
        }

    def _prepare_enum(self, reg: RegisterPlan, field: FieldPlan) -> Dict[str, Any]:
        return {
            "name": self.naming.enum_type(reg.name, field.name),
            "field": field.name,
            "repr": self._uint(field.storage_bits),
            "variants": [
                {
                    "name": self.naming.pascal(value.name),
                    "source": value.name,
                    "value": value.value,
                    "description": value.description,
                }
                for value in field.enum_values
            ],
        }

    def _prepare_register(self, reg: RegisterPlan) -> Dict[str, Any]:
        return {
            "name": reg.name,
            "description": reg.description,
            "offset": reg.offset,
            "type_name": self.naming.register_type(reg.name),
            "get_name": self.naming.snapshot_type(reg.name),
            "update_name": self.naming.transaction_type(reg.name),
            "storage": self._uint(reg.width),
            "digits": reg.width // 4,
            "always_cleared_mask": reg.always_cleared_mask,
            "reset_value": reg.reset_value,
            "readable": reg.readable,
            "writable": reg.writable,
            "fields": [self._prepare_field(reg, f) for f in reg.fields],
            "enums": [
                self._prepare_enum(reg, f) for f in reg.fields if f.kind is ValueKind.ENUM
            ],
        }

    def _prepare_members(self, periph: PeripheralPlan) -> List[Dict[str, Any]]:
        members = []
        pad_num = 0
        for slot in periph.slots:
            if slot.is_padding:
                members.append(
                    {"name": f"_pad{pad_num}", "type": f"[u8; {slot.size}]", "public": False}
                )
                pad_num += 1
            else:
                members.append(
                    {
                        "name": self.naming.member_name(slot.register.name),
                        "type": self.naming.register_type(slot.register.name),
                        "offset": slot.offset,
                        "public": True,
                    }
                )
        return members

    def _module_name(self, periph: PeripheralPlan, used: Set[str]) -> str:
        """Group name for shared register blocks when still free, else the peripheral name."""
        candidates = [periph.name]
        if len(periph.instances) > 1 and periph.group_name:
            candidates.insert(0, periph.group_name)
        for candidate in candidates:
            name = self.naming.module_name(candidate)
            if name not in used:
                used.add(name)
                return name
        name = self.naming.module_name(periph.name) + "_block"
        used.add(name)
        return name

    def _check_identifiers(self, periph: Dict[str, Any], cell_path: str, links: _Scope) -> None:
        """
        Reject peripherals whose distinct element names map onto one Rust identifier.

        Register, snapshot, transaction and enum types share the module
        namespace; field getters and setters share their impl blocks.

        Raises:
            LayoutConflict: Naming both elements and the shared identifier.
        """
        prefix = periph["name"]
        generated = "generated item"
        types = _Scope(
            f"module {periph['module']}",
            {cell_path.rsplit("::", 1)[-1]: f"import {cell_path}", periph["block"]: generated},
        )
        members = _Scope(f"{prefix} {periph['block']}")
        statics = _Scope(f"module {periph['module']}")

        for static in periph["statics"]:
            owner = f"peripheral {static['instance']}"
            statics.declare(static["name"], owner)
            links.declare(static["link_name"], owner)

        for reg in periph["registers"]:
            owner = f"register {prefix}.{reg['name']}"
            members.declare(self.naming.member_name(reg["name"]), owner)
            types.declare(reg["type_name"], owner)
            if reg["readable"]:
                types.declare(reg["get_name"], f"snapshot of {owner}")
            if reg["writable"]:
                types.declare(reg["update_name"], f"transaction of {owner}")

            accessors = _Scope(
                f"impl {reg['type_name']}",
                dict.fromkeys(("get", "update", "ignoring_state"), generated),
            )
            getters = _Scope(f"impl {reg['get_name']}", dict.fromkeys(("new", "raw"), generated))
            setters = _Scope(
                f"impl {reg['update_name']}",
                dict.fromkeys(("new", "new_ignoring_state", "set_raw"), generated),
            )
            for field in reg["fields"]:
                field_owner = f"field {prefix}.{reg['name']}.{field['name']}"
                if field["readable"]:
                    accessors.declare(field["getter"], field_owner)
                    getters.declare(field["getter"], field_owner)
                if field["writable"]:
                    accessors.declare(field["setter"], field_owner)
                    setters.declare(field["setter"], field_owner)

            for enum in reg["enums"]:
                enum_owner = f"enumerated values of field {prefix}.{reg['name']}.{enum['field']}"
                types.declare(enum["name"], enum_owner)
                variants = _Scope(f"enum {enum['name']}")
                for variant in enum["variants"]:
                    variants.declare(variant["name"], f"value {variant['source']}")

    def _get_template_context(self, plan: DevicePlan) -> Dict[str, Any]:
        """Build common template context."""
        cell_path = self.config.volatile_cell
        used: Set[str] = set()
        links = _Scope("link map")
        peripherals = []
        for periph in plan.peripherals:
            context = {
                "name": periph.name,
                "description": periph.description,
                "module": self._module_name(periph, used),
                "block": REGISTER_BLOCK,
                "members": self._prepare_members(periph),
                "registers": [self._prepare_register(r) for r in periph.registers],
                "statics": [
                    {
                        "name": self.naming.static_name(inst.name),
                        "instance": inst.name,
                        "link_name": self.naming.link_name(plan.name, inst.name),
                        "base_address": inst.base_address,
                    }
                    for inst in periph.instances
                ],
            }
            self._check_identifiers(context, cell_path, links)
            peripherals.append(context)

        return {
            "device_name": plan.name,
            "device_description": plan.description,
            "device_module": self.naming.module_name(plan.name),
            "cell_path": cell_path,
            "cell": cell_path.rsplit("::", 1)[-1],
            "address_digits": (plan.address_width + 3) // 4,
            "peripherals": peripherals,
        }

    def generate_device(self, plan: DevicePlan) -> str:
        """Generate the Rust module for a device."""
        source = self.render("device.rs.j2", self._get_template_context(plan))
        logger.debug("Generated %d bytes of Rust for device '%s'", len(source), plan.name)
        return source

    def generate_link_map(self, plan: DevicePlan) -> str:
        """Generate ``<symbol> = 0x<base>;`` lines for every peripheral instance."""
        return self.render("link_map.ld.j2", self._get_template_context(plan))
