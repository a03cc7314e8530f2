"""
Identifier naming for emitted Rust source.

Device and peripheral modules, register members, field methods and link
symbols are snake_case; types and enum variants are PascalCase; statics
are CONSTANT_CASE. Names that would clash with Rust keywords, with the prelude
types the emitted code uses or with the accessor methods every register type
defines are adjusted. Distinct names can still map onto one identifier; the
generator rejects such collisions.
"""

from typing import FrozenSet

from regcraft.utils import to_constant_case, to_pascal_case, to_snake_case

RUST_KEYWORDS: FrozenSet[str] = frozenset(
    {
        "abstract", "as", "async", "await", "become", "box", "break", "const",
        "continue", "crate", "do", "dyn", "else", "enum", "extern", "false",
        "final", "fn", "for", "gen", "if", "impl", "in", "let", "loop", "macro",
        "match", "mod", "move", "mut", "override", "priv", "pub", "ref",
        "return", "self", "Self", "static", "struct", "super", "trait", "true",
        "try", "type", "typeof", "union", "unsafe", "unsized", "use", "virtual",
        "where", "while", "yield",
    }
)

# Prelude types the emitted code refers to by their bare name
PRELUDE_TYPES: FrozenSet[str] = frozenset({"Option", "Drop"})

# Methods generated on every register, snapshot and transaction type
RESERVED_METHODS: FrozenSet[str] = frozenset(
    {"get", "update", "ignoring_state", "new", "new_ignoring_state", "raw"}
)


class RustNamingScheme:
    """Maps device element names to Rust identifiers."""

    def __init__(self, link_prefix: str = "mmap_"):
        self.link_prefix = link_prefix

    @staticmethod
    def _escape(ident: str, leading_digit_prefix: str) -> str:
        if not ident:
            ident = leading_digit_prefix
        elif ident[0].isdigit():
            ident = leading_digit_prefix + ident
        if ident in RUST_KEYWORDS:
            ident += "_"
        return ident

    def snake(self, name: str) -> str:
        return self._escape(to_snake_case(name), "_")

    def pascal(self, name: str) -> str:
        return self._escape(to_pascal_case(name), "V")

    def constant(self, name: str) -> str:
        return self._escape(to_constant_case(name), "_")

    def module_name(self, name: str) -> str:
        return self.snake(name)

    def register_type(self, name: str) -> str:
        ident = self.pascal(name)
        if ident in PRELUDE_TYPES:
            ident += "_"
        return ident

    def snapshot_type(self, name: str) -> str:
        return self.pascal(name) + "Get"

    def transaction_type(self, name: str) -> str:
        return self.pascal(name) + "Update"

    def enum_type(self, register: str, field: str) -> str:
        return self.pascal(register) + to_pascal_case(field)

    def member_name(self, name: str) -> str:
        """Register member of a peripheral register block."""
        return self.snake(name)

    def getter_name(self, field: str) -> str:
        name = self.snake(field)
        if name in RESERVED_METHODS:
            name += "_field"
        return name

    def setter_name(self, field: str) -> str:
        return "set_" + self.getter_name(field)

    def static_name(self, instance: str) -> str:
        return self.constant(instance)

    def link_name(self, device: str, instance: str) -> str:
        """Symbol the external linker resolves to a peripheral's base address."""
        return self.link_prefix + to_snake_case(f"{device}_{instance}")
