"""
Runtime register access for hardware I/O.

This module executes access plans against a bus at runtime.
For device descriptions, use regcraft.model instead.
"""

from .register import (
    AbstractBusInterface,
    BusIOError,
    Peripheral,
    Register,
    RegisterSnapshot,
    RegisterTransaction,
    TransactionState,
    TransactionStateError,
)

__all__ = [
    "AbstractBusInterface",
    "BusIOError",
    "Peripheral",
    "Register",
    "RegisterSnapshot",
    "RegisterTransaction",
    "TransactionState",
    "TransactionStateError",
]
