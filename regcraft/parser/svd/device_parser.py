"""
SVD device builder.

Converts an SVD element tree into a frozen ``Device`` model.
Resolves derived peripherals, inherited register properties and
register arrays, and rejects structurally invalid input.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple, Union

from pydantic import ValidationError

from regcraft.config import GeneratorConfig
from regcraft.errors import MalformedElement
from regcraft.model import AccessType, Device, Peripheral
from regcraft.utils import filter_none, parse_int

from .element_tree import DOCUMENT_PATH, load_tree, parse_tree
from .register_parser import RegisterParserMixin, RegisterProperties

logger = logging.getLogger(__name__)


class SvdDeviceParser(RegisterParserMixin):
    """
    Builder for device models from SVD element trees.

    Handles:
    - Required element checks with element paths and line numbers
    - Decimal, hexadecimal and binary numeric literals
    - Register property inheritance (size, access, resetValue)
    - derivedFrom peripherals and register arrays (dim)
    """

    def __init__(self, config: Optional[GeneratorConfig] = None):
        self.config = config or GeneratorConfig()
        self._current_file: Optional[Path] = None

    def parse_file(self, file_path: Union[str, Path]) -> Device:
        """
        Parse an SVD file.

        Args:
            file_path: Path to the SVD file

        Returns:
            Device: Device model (not yet layout-validated)

        Raises:
            FileNotFoundError: If the file does not exist
            MalformedElement: If the description is malformed
        """
        file_path = Path(file_path)
        self._current_file = file_path
        return self.build(load_tree(file_path))

    def parse_string(self, text: Union[str, bytes]) -> Device:
        """Parse SVD text held in memory."""
        self._current_file = None
        return self.build(parse_tree(text))

    def build(self, root: Any) -> Device:
        """Build a device from the root <device> element."""
        if root.tag != "device":
            raise self._error(
                f"Root element must be <device>, got <{root.tag}>", DOCUMENT_PATH, root
            )

        name = self._required_text(root, "name", "device")
        path = f"device[{name}]"
        # SVD has no address width; <width> is the bus data width and only a fallback
        bus_width = self._optional_int(root, "width", path)
        address_width = (
            self.config.address_width if self.config.address_width is not None else bus_width
        )
        props = self._inherit_properties(
            root,
            RegisterProperties(
                size=self.config.default_register_size, access=AccessType.READ_WRITE
            ),
            path,
        )

        peripherals_el = root.find("peripherals")
        if peripherals_el is None:
            raise self._error("Missing required element <peripherals>", path, root)

        peripherals = []
        inherit_registers: Set[str] = set()
        for idx, element in enumerate(peripherals_el.findall("peripheral")):
            peripheral, has_registers = self._parse_peripheral(element, idx, path, props)
            if peripheral.derived_from and not has_registers:
                inherit_registers.add(peripheral.name)
            peripherals.append(peripheral)

        peripherals = self._resolve_derived(peripherals, inherit_registers, path, root)

        try:
            device = Device(
                **filter_none(
                    {
                        "name": name,
                        "description": self._optional_text(root, "description"),
                        "address_width": address_width,
                        "peripherals": peripherals,
                    }
                )
            )
        except ValidationError as e:
            raise self._validation_error(e, path, root)

        logger.info(
            "Built device '%s': %d peripherals, %d registers",
            device.name,
            len(device.peripherals),
            device.total_registers,
        )
        return device

    def _parse_peripheral(
        self, element: Any, idx: int, device_path: str, props: RegisterProperties
    ) -> Tuple[Peripheral, bool]:
        """Parse a <peripheral>. Also reports whether it lists its own registers."""
        path = f"{device_path}/{self._element_label(element, 'peripheral', idx)}"
        name = self._required_text(element, "name", path)
        base_address = self._required_int(element, "baseAddress", path)
        periph_props = self._inherit_properties(element, props, path)

        registers_el = element.find("registers")
        registers = (
            self._parse_registers(registers_el, path, periph_props)
            if registers_el is not None
            else []
        )

        derived_from = element.get("derivedFrom")
        try:
            peripheral = Peripheral(
                **filter_none(
                    {
                        "name": name,
                        "description": self._optional_text(element, "description"),
                        "group_name": self._optional_text(element, "groupName"),
                        "base_address": base_address,
                        "derived_from": derived_from.strip() if derived_from else None,
                        "registers": registers,
                    }
                )
            )
        except ValidationError as e:
            raise self._validation_error(e, path, element)
        return peripheral, registers_el is not None

    def _resolve_derived(
        self,
        peripherals: List[Peripheral],
        inherit_registers: Set[str],
        device_path: str,
        root: Any,
    ) -> List[Peripheral]:
        """Copy registers, description and group name from derivedFrom bases."""
        by_name: Dict[str, Peripheral] = {p.name: p for p in peripherals}
        resolved: Dict[str, Peripheral] = {}

        def resolve(periph: Peripheral, chain: List[str]) -> Peripheral:
            if periph.name in resolved:
                return resolved[periph.name]
            path = f"{device_path}/peripheral[{periph.name}]"
            if periph.derived_from is None or periph.name not in inherit_registers:
                if periph.derived_from is not None and periph.derived_from not in by_name:
                    raise self._error(
                        f"derivedFrom references unknown peripheral '{periph.derived_from}'",
                        path,
                        root,
                    )
                resolved[periph.name] = periph
                return periph

            base = by_name.get(periph.derived_from)
            if base is None:
                raise self._error(
                    f"derivedFrom references unknown peripheral '{periph.derived_from}'",
                    path,
                    root,
                )
            if periph.name in chain:
                raise self._error(
                    "Circular derivedFrom chain: " + " -> ".join(chain + [periph.name]),
                    path,
                    root,
                )
            base = resolve(base, chain + [periph.name])
            result = periph.model_copy(
                update={
                    "registers": base.registers,
                    "description": periph.description or base.description,
                    "group_name": periph.group_name or base.group_name,
                }
            )
            resolved[periph.name] = result
            return result

        return [resolve(p, []) for p in peripherals]

    def _error(self, message: str, path: str, element: Any) -> MalformedElement:
        return MalformedElement(
            message, path, self._current_file, getattr(element, "sourceline", None)
        )

    def _validation_error(
        self, error: ValidationError, path: str, element: Any
    ) -> MalformedElement:
        """Convert Pydantic validation errors to MalformedElement."""
        errors = []
        for err in error.errors():
            loc = " -> ".join(str(x) for x in err["loc"])
            errors.append(f"{loc}: {err['msg']}")
        return self._error("Validation failed:\n  " + "\n  ".join(errors), path, element)

    def _element_label(self, element: Any, tag: str, index: int) -> str:
        name = self._optional_text(element, "name")
        if name:
            return f"{tag}[{name}]"
        return f"{tag}#{index}"

    @staticmethod
    def _optional_text(element: Any, tag: str) -> Optional[str]:
        """Whitespace-normalized text of a child element, or None if absent/empty."""
        child = element.find(tag)
        if child is None or child.text is None:
            return None
        text = " ".join(child.text.split())
        return text or None

    def _required_text(self, element: Any, tag: str, path: str) -> str:
        text = self._optional_text(element, tag)
        if text is None:
            raise self._error(f"Missing required element <{tag}>", path, element)
        return text

    def _optional_int(self, element: Any, tag: str, path: str) -> Optional[int]:
        text = self._optional_text(element, tag)
        if text is None:
            return None
        try:
            return parse_int(text)
        except ValueError as e:
            raise self._error(f"Invalid <{tag}>: {e}", f"{path}/{tag}", element.find(tag))

    def _required_int(self, element: Any, tag: str, path: str) -> int:
        value = self._optional_int(element, tag, path)
        if value is None:
            raise self._error(f"Missing required element <{tag}>", path, element)
        return value

    def _optional_access(self, element: Any, path: str) -> Optional[AccessType]:
        text = self._optional_text(element, "access")
        if text is None:
            return None
        try:
            return AccessType.from_string(text)
        except ValueError as e:
            raise self._error(str(e), f"{path}/access", element.find("access"))
