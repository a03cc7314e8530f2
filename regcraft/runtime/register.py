"""
Register Snapshot and Transaction Classes

This module executes register access plans against a bus. A snapshot reads a
register once and decodes every field from that single value; a transaction
accumulates field writes without I/O and commits them exactly once, with at
most one read (merge mode) and exactly one write.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, Optional, Union

from regcraft.errors import RegCraftError
from regcraft.planner import (
    CommitMode,
    FieldPlan,
    PeripheralPlan,
    RegisterPlan,
    ValueKind,
)

logger = logging.getLogger(__name__)

FieldValue = Union[int, bool, str]


class BusIOError(IOError):
    """Raised when a bus read/write operation fails.

    Bus interface implementations should raise this when
    a hardware read or write operation fails (timeout, NACK, etc.).
    """


class TransactionStateError(RegCraftError):
    """Raised when a committed transaction is used again."""


class TransactionState(str, Enum):
    OPEN = "open"
    COMMITTED = "committed"


class AbstractBusInterface(ABC):
    """
    Abstract base class for synchronous bus interfaces.
    """

    @abstractmethod
    def read_word(self, address: int, width: int = 32) -> int:
        """Read a ``width``-bit register at the specified address.

        Raises:
            BusIOError: If the bus operation fails.
        """
        pass

    @abstractmethod
    def write_word(self, address: int, data: int, width: int = 32) -> None:
        """Write a ``width``-bit register at the specified address.

        Raises:
            BusIOError: If the bus operation fails.
        """
        pass


class RegisterSnapshot:
    """
    Immutable value of one register read.

    All field values come from the same read and are mutually consistent.
    """

    __slots__ = ("_plan", "_raw")

    def __init__(self, plan: RegisterPlan, raw: int):
        object.__setattr__(self, "_plan", plan)
        object.__setattr__(self, "_raw", raw & plan.register_mask)

    def __setattr__(self, name, value):
        raise AttributeError(f"Snapshot of register '{self._plan.name}' is immutable")

    @property
    def raw(self) -> int:
        return self._raw

    def _readable_field(self, name: str) -> FieldPlan:
        field = self._plan.field(name)
        if not field.readable:
            raise ValueError(f"Field '{name}' is write-only")
        return field

    def get(self, name: str) -> Union[int, bool]:
        """Decoded value of a field: bool for one-bit fields, int otherwise."""
        field = self._readable_field(name)
        value = field.decode(self._raw)
        if field.kind is ValueKind.BOOL:
            return bool(value)
        return value

    def __getitem__(self, name: str) -> Union[int, bool]:
        return self.get(name)

    def get_enum(self, name: str) -> Optional[str]:
        """Name of the enumerated value a field holds, or None if unlisted."""
        field = self._readable_field(name)
        return field.enum_name_of(field.decode(self._raw))

    def as_dict(self) -> Dict[str, Union[int, bool]]:
        return {f.name: self.get(f.name) for f in self._plan.readable_fields}

    def __eq__(self, other) -> bool:
        if not isinstance(other, RegisterSnapshot):
            return NotImplemented
        return self._plan == other._plan and self._raw == other._raw

    def __hash__(self) -> int:
        return hash((self._plan.name, self._raw))

    def __repr__(self) -> str:
        return f"RegisterSnapshot({self._plan.name}=0x{self._raw:X})"


class RegisterTransaction:
    """
    Deferred write to one register.

    Field writes are accumulated into a value and a mask; nothing touches the
    bus until ``commit()``. As a context manager the transaction commits on
    every exit from the ``with`` block, including exceptional ones.

    Example:
        with regs["CR1"].update() as cr1:
            cr1.set("SPE", True).set("CPOL", 1)
    """

    def __init__(self, register: "Register", mode: CommitMode = CommitMode.MERGE):
        if not register.plan.writable:
            raise ValueError(f"Register '{register.plan.name}' is read-only")
        if CommitMode(mode).reads_hardware and not register.plan.readable:
            raise ValueError(
                f"Register '{register.plan.name}' is write-only; use ignoring_state()"
            )
        self._register = register
        self._plan = register.plan
        self.mode = CommitMode(mode)
        self.value = 0
        self.mask = 0
        self.state = TransactionState.OPEN

    def _ensure_open(self) -> None:
        if self.state is not TransactionState.OPEN:
            raise TransactionStateError(
                f"Transaction on register '{self._plan.name}' was already committed"
            )

    def _coerce(self, field: FieldPlan, value: FieldValue) -> int:
        if isinstance(value, str):
            if field.kind is not ValueKind.ENUM:
                raise ValueError(f"Field '{field.name}' has no enumerated values")
            try:
                return field.enum_value_of(value)
            except KeyError as e:
                raise ValueError(str(e.args[0])) from e
        value = int(value)
        if value < 0 or value > field.field_mask:
            raise ValueError(f"Value {value} exceeds field '{field.name}' width")
        return value

    def set(self, name: str, value: FieldValue) -> "RegisterTransaction":
        """Stage a field value. Returns the transaction for chaining.

        Raises:
            KeyError: If the field does not exist.
            ValueError: If the field is read-only or the value does not fit.
            TransactionStateError: If the transaction was already committed.
        """
        self._ensure_open()
        field = self._plan.field(name)
        if not field.writable:
            raise ValueError(f"Field '{name}' is read-only")
        self.value, self.mask = self._plan.accumulate(
            self.value, self.mask, field, self._coerce(field, value)
        )
        return self

    def set_raw(self, value: int) -> "RegisterTransaction":
        """Stage a whole register value; every bit counts as written."""
        self._ensure_open()
        if value < 0 or value > self._plan.register_mask:
            raise ValueError(
                f"Value 0x{value:X} exceeds register '{self._plan.name}' width"
            )
        self.value = value
        self.mask = self._plan.register_mask
        return self

    def commit(self) -> int:
        """Write the accumulated value. Returns the value written.

        Raises:
            TransactionStateError: On a second commit.
            BusIOError: If the merge read or the write fails. A failed read
                aborts the commit before anything is written.
        """
        self._ensure_open()
        self.state = TransactionState.COMMITTED
        current = self._register.read() if self.mode.reads_hardware else None
        final = self._plan.commit_value(self.value, self.mask, current)
        logger.debug(
            "Commit %s (%s): value=0x%X mask=0x%X current=%s final=0x%X",
            self._plan.name,
            self.mode.value,
            self.value,
            self.mask,
            "-" if current is None else f"0x{current:X}",
            final,
        )
        self._register.write(final)
        return final

    def __enter__(self) -> "RegisterTransaction":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self.state is TransactionState.OPEN:
            self.commit()


class Register:
    """
    Register bound to a bus at an absolute address.
    """

    def __init__(self, plan: RegisterPlan, bus: AbstractBusInterface, base_address: int = 0):
        self.plan = plan
        self.address = base_address + plan.offset
        self._bus = bus

    @property
    def name(self) -> str:
        return self.plan.name

    def read(self) -> int:
        """Read the entire register value."""
        if not self.plan.readable:
            raise ValueError(f"Register '{self.plan.name}' is write-only")
        return self._bus.read_word(self.address, self.plan.width) & self.plan.register_mask

    def write(self, value: int) -> None:
        """Write the entire register value."""
        self._bus.write_word(self.address, value & self.plan.register_mask, self.plan.width)

    def snapshot(self) -> RegisterSnapshot:
        return RegisterSnapshot(self.plan, self.read())

    def read_field(self, name: str) -> Union[int, bool]:
        """Read a specific field (one register read)."""
        return self.snapshot().get(name)

    def transaction(self, mode: CommitMode = CommitMode.MERGE) -> RegisterTransaction:
        return RegisterTransaction(self, mode)

    def update(self) -> RegisterTransaction:
        """Transaction that preserves fields it does not set."""
        return self.transaction(CommitMode.MERGE)

    def ignoring_state(self) -> RegisterTransaction:
        """Transaction that writes zero to fields it does not set."""
        return self.transaction(CommitMode.OVERWRITE)

    def __repr__(self) -> str:
        return f"Register({self.plan.name}@0x{self.address:X})"


class Peripheral:
    """
    Registers of one peripheral instance, looked up by name.
    """

    def __init__(
        self, plan: PeripheralPlan, bus: AbstractBusInterface, instance: Optional[str] = None
    ):
        self.plan = plan
        self.instance = plan.instance(instance) if instance else plan.instances[0]
        self._registers = {
            reg.name: Register(reg, bus, self.instance.base_address) for reg in plan.registers
        }

    @property
    def name(self) -> str:
        return self.instance.name

    @property
    def base_address(self) -> int:
        return self.instance.base_address

    def __getitem__(self, name: str) -> Register:
        if name not in self._registers:
            raise KeyError(f"Register '{name}' not found in peripheral '{self.name}'")
        return self._registers[name]

    def __iter__(self):
        return iter(self._registers.values())

    def __len__(self) -> int:
        return len(self._registers)
