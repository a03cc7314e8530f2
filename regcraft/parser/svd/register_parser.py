"""Register and field parsing mixin for ``SvdDeviceParser``."""

import logging
from dataclasses import dataclass, replace
from typing import Any, List, Optional, Tuple

from pydantic import ValidationError

from regcraft.model import AccessType, EnumeratedValue, FieldDef, RegisterDef
from regcraft.utils import filter_none, parse_bit_range, parse_int

from .dim_index import expand_dim_index
from .protocols import ParserHostContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegisterProperties:
    """Register defaults inherited from device to peripheral to register."""

    size: int
    access: AccessType
    reset_value: Optional[int] = None


class RegisterParserMixin(ParserHostContext):
    """Mixin implementing register, register array and field parsing."""

    def _inherit_properties(
        self, element: Any, parent: RegisterProperties, path: str
    ) -> RegisterProperties:
        """Override inherited register properties with the element's own."""
        size = self._optional_int(element, "size", path)
        access = self._optional_access(element, path)
        reset_value = self._optional_int(element, "resetValue", path)
        return replace(
            parent,
            **filter_none({"size": size, "access": access, "reset_value": reset_value}),
        )

    def _parse_registers(
        self, registers_el: Any, periph_path: str, props: RegisterProperties
    ) -> List[RegisterDef]:
        """Parse the children of a <registers> element, expanding arrays."""
        registers = []
        for idx, child in enumerate(registers_el):
            if not isinstance(child.tag, str):
                continue
            if child.tag == "cluster":
                raise self._error(
                    "<cluster> elements are not supported",
                    f"{periph_path}/{self._element_label(child, 'cluster', idx)}",
                    child,
                )
            if child.tag != "register":
                logger.debug("Ignoring <%s> in %s", child.tag, periph_path)
                continue
            registers.extend(self._parse_register(child, idx, periph_path, props))
        return registers

    def _parse_register(
        self, element: Any, idx: int, periph_path: str, props: RegisterProperties
    ) -> List[RegisterDef]:
        """Parse one <register> element into one or more (array) registers."""
        path = f"{periph_path}/{self._element_label(element, 'register', idx)}"

        name = self._required_text(element, "name", path)
        address_offset = self._required_int(element, "addressOffset", path)
        reg_props = self._inherit_properties(element, props, path)
        always_cleared_mask = self._optional_int(element, "alwaysClearedMask", path)
        description = self._optional_text(element, "description")

        fields_el = element.find("fields")
        fields = (
            self._parse_fields(fields_el, path, reg_props.access)
            if fields_el is not None
            else []
        )

        dim = self._optional_int(element, "dim", path)
        if dim is None:
            return [
                self._build_register_def(
                    path,
                    element,
                    name=name,
                    address_offset=address_offset,
                    props=reg_props,
                    description=description,
                    always_cleared_mask=always_cleared_mask,
                    fields=fields,
                )
            ]

        if "%s" not in name:
            raise self._error(
                f"Register array name '{name}' must contain '%s'", path, element
            )
        increment = self._required_int(element, "dimIncrement", path)
        indices = self._parse_dim_index(element, dim, path)

        registers = []
        for i, index in enumerate(indices):
            registers.append(
                self._build_register_def(
                    path,
                    element,
                    name=name.replace("[%s]", index).replace("%s", index),
                    address_offset=address_offset + i * increment,
                    props=reg_props,
                    description=(description or "").replace("%s", index) or None,
                    always_cleared_mask=always_cleared_mask,
                    fields=fields,
                )
            )
        return registers

    def _build_register_def(
        self,
        path: str,
        element: Any,
        *,
        name: str,
        address_offset: int,
        props: RegisterProperties,
        description: Optional[str],
        always_cleared_mask: Optional[int],
        fields: List[FieldDef],
    ) -> RegisterDef:
        """Build a RegisterDef from parsed data with consistent field mapping."""
        try:
            return RegisterDef(
                **filter_none(
                    {
                        "name": name,
                        "address_offset": address_offset,
                        "size": props.size,
                        "access": props.access,
                        "description": description,
                        "reset_value": props.reset_value,
                        "always_cleared_mask": always_cleared_mask,
                        "fields": fields,
                    }
                )
            )
        except ValidationError as e:
            raise self._validation_error(e, path, element)

    def _parse_dim_index(self, element: Any, dim: int, path: str) -> List[str]:
        """Expand <dimIndex> (``0-3``, ``A-D`` or ``a,b,c``) into index strings."""
        text = self._optional_text(element, "dimIndex")
        if text is None:
            indices = [str(i) for i in range(dim)]
        else:
            try:
                indices = expand_dim_index(text)
            except ValueError as e:
                raise self._error(str(e), f"{path}/dimIndex", element)

        if len(indices) != dim:
            raise self._error(
                f"<dimIndex> lists {len(indices)} indices but <dim> is {dim}",
                f"{path}/dimIndex",
                element,
            )
        return indices

    def _parse_fields(
        self, fields_el: Any, reg_path: str, default_access: AccessType
    ) -> List[FieldDef]:
        """Parse the <field> children of a <fields> element."""
        fields = []
        for idx, element in enumerate(fields_el.findall("field")):
            path = f"{reg_path}/{self._element_label(element, 'field', idx)}"
            name = self._required_text(element, "name", path)
            bit_offset, bit_width = self._parse_bit_position(element, path)
            access = self._optional_access(element, path) or default_access
            enum_name, enumerated_values = self._parse_enumerated_values(element, path)

            try:
                fields.append(
                    FieldDef(
                        **filter_none(
                            {
                                "name": name,
                                "description": self._optional_text(element, "description"),
                                "bit_offset": bit_offset,
                                "bit_width": bit_width,
                                "access": access,
                                "enum_name": enum_name,
                                "enumerated_values": enumerated_values,
                            }
                        )
                    )
                )
            except ValidationError as e:
                raise self._validation_error(e, path, element)
        return fields

    def _parse_bit_position(self, element: Any, path: str) -> Tuple[int, int]:
        """Resolve a field's ``(bit_offset, bit_width)`` from any SVD bit notation."""
        if element.find("bitOffset") is not None or element.find("bitWidth") is not None:
            return (
                self._required_int(element, "bitOffset", path),
                self._required_int(element, "bitWidth", path),
            )

        if element.find("lsb") is not None or element.find("msb") is not None:
            lsb = self._required_int(element, "lsb", path)
            msb = self._required_int(element, "msb", path)
            if msb < lsb:
                raise self._error(f"<msb> {msb} is below <lsb> {lsb}", path, element)
            return lsb, msb - lsb + 1

        bit_range = self._optional_text(element, "bitRange")
        if bit_range is not None:
            try:
                return parse_bit_range(bit_range)
            except ValueError as e:
                raise self._error(str(e), f"{path}/bitRange", element)

        raise self._error(
            "Missing bit position: expected <bitOffset> and <bitWidth>, "
            "<lsb> and <msb>, or <bitRange>",
            path,
            element,
        )

    def _parse_enumerated_values(
        self, element: Any, path: str
    ) -> Tuple[Optional[str], Optional[List[EnumeratedValue]]]:
        """Parse the first <enumeratedValues> block of a field."""
        enums_el = element.find("enumeratedValues")
        if enums_el is None:
            return None, None

        enum_path = f"{path}/enumeratedValues"
        values = []
        for idx, value_el in enumerate(enums_el.findall("enumeratedValue")):
            value_path = f"{enum_path}/{self._element_label(value_el, 'enumeratedValue', idx)}"
            value_name = self._required_text(value_el, "name", value_path)
            if value_el.find("value") is None and self._optional_text(value_el, "isDefault"):
                logger.debug("Skipping default enumerated value %s", value_path)
                continue
            try:
                values.append(
                    EnumeratedValue(
                        **filter_none(
                            {
                                "name": value_name,
                                "value": self._required_int(value_el, "value", value_path),
                                "description": self._optional_text(value_el, "description"),
                            }
                        )
                    )
                )
            except ValidationError as e:
                raise self._validation_error(e, value_path, value_el)

        return self._optional_text(enums_el, "name"), values or None
