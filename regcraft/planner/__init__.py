"""
Target-independent register access plans.
"""

from .access_plan import (
    AccessPlanner,
    CommitMode,
    DevicePlan,
    EnumPlan,
    FieldPlan,
    PeripheralInstance,
    PeripheralPlan,
    RegisterPlan,
    RegisterSlot,
    ValueKind,
    plan_device,
    storage_bits,
)

__all__ = [
    "AccessPlanner",
    "CommitMode",
    "DevicePlan",
    "EnumPlan",
    "FieldPlan",
    "PeripheralInstance",
    "PeripheralPlan",
    "RegisterPlan",
    "RegisterSlot",
    "ValueKind",
    "plan_device",
    "storage_bits",
]
