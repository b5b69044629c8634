# Overview: Status state machines for every document-like entity.

"""
Allowed status transitions, one allow-list per entity.

STATE MACHINES:
    sale:        COMPLETED -> VOIDED | REFUNDED
    purchase:    PENDING -> RECEIVED | CANCELLED
    repair:      RECEIVED -> DIAGNOSING -> WAITING_PARTS -> REPAIRING -> COMPLETED -> DELIVERED
                 (DIAGNOSING may skip straight to REPAIRING; CANCELLED from any non-terminal state)
    trade_in:    PENDING -> ACCEPTED | REJECTED, ACCEPTED -> RESOLD
    warranty:    ACTIVE -> CLAIMED | VOIDED   (EXPIRED is derived from end_date, never stored)
    installment: ACTIVE -> COMPLETED (on final payment) | DEFAULTED (manual)

A status with no outgoing edges is terminal. Any transition not listed is
rejected with ConflictError naming the current status.
"""

from __future__ import annotations

from enum import Enum

from ..models import (
    InstallmentStatus,
    PurchaseStatus,
    RepairStatus,
    SaleStatus,
    TradeInStatus,
    WarrantyStatus,
)
from ..validation import ConflictError


TRANSITIONS: dict[str, dict[Enum, frozenset]] = {
    "sale": {
        SaleStatus.COMPLETED: frozenset({SaleStatus.VOIDED, SaleStatus.REFUNDED}),
        SaleStatus.VOIDED: frozenset(),
        SaleStatus.REFUNDED: frozenset(),
    },
    "purchase": {
        PurchaseStatus.PENDING: frozenset({PurchaseStatus.RECEIVED, PurchaseStatus.CANCELLED}),
        PurchaseStatus.RECEIVED: frozenset(),
        PurchaseStatus.CANCELLED: frozenset(),
    },
    "repair": {
        RepairStatus.RECEIVED: frozenset({RepairStatus.DIAGNOSING, RepairStatus.CANCELLED}),
        RepairStatus.DIAGNOSING: frozenset({
            RepairStatus.WAITING_PARTS,
            RepairStatus.REPAIRING,
            RepairStatus.CANCELLED,
        }),
        RepairStatus.WAITING_PARTS: frozenset({RepairStatus.REPAIRING, RepairStatus.CANCELLED}),
        RepairStatus.REPAIRING: frozenset({RepairStatus.COMPLETED, RepairStatus.CANCELLED}),
        RepairStatus.COMPLETED: frozenset({RepairStatus.DELIVERED, RepairStatus.CANCELLED}),
        RepairStatus.DELIVERED: frozenset(),
        RepairStatus.CANCELLED: frozenset(),
    },
    "trade_in": {
        TradeInStatus.PENDING: frozenset({TradeInStatus.ACCEPTED, TradeInStatus.REJECTED}),
        TradeInStatus.ACCEPTED: frozenset({TradeInStatus.RESOLD}),
        TradeInStatus.REJECTED: frozenset(),
        TradeInStatus.RESOLD: frozenset(),
    },
    "warranty": {
        WarrantyStatus.ACTIVE: frozenset({WarrantyStatus.CLAIMED, WarrantyStatus.VOIDED}),
        WarrantyStatus.EXPIRED: frozenset(),
        WarrantyStatus.CLAIMED: frozenset(),
        WarrantyStatus.VOIDED: frozenset(),
    },
    "installment": {
        InstallmentStatus.ACTIVE: frozenset({InstallmentStatus.COMPLETED, InstallmentStatus.DEFAULTED}),
        InstallmentStatus.COMPLETED: frozenset(),
        InstallmentStatus.DEFAULTED: frozenset(),
    },
}

_LABELS = {
    "sale": "sale",
    "purchase": "purchase",
    "repair": "repair order",
    "trade_in": "trade-in",
    "warranty": "warranty",
    "installment": "installment",
}


def allowed_transitions(entity: str, current: Enum) -> frozenset:
    try:
        graph = TRANSITIONS[entity]
    except KeyError:
        raise ValueError(f"Unknown lifecycle entity: {entity}")
    return graph.get(current, frozenset())


def is_terminal(entity: str, status: Enum) -> bool:
    return not allowed_transitions(entity, status)


def can_transition(entity: str, current: Enum, target: Enum) -> bool:
    return target in allowed_transitions(entity, current)


def assert_transition(entity: str, current: Enum, target: Enum) -> None:
    """
    Raise ConflictError unless current -> target is on the allow-list.

    Example message: "Cannot change purchase from RECEIVED to CANCELLED"
    """
    if can_transition(entity, current, target):
        return
    label = _LABELS.get(entity, entity)
    if is_terminal(entity, current):
        raise ConflictError(
            f"Cannot change {label} from {current.value} to {target.value}: "
            f"{current.value} is final",
            details={"current_status": current.value, "requested_status": target.value},
        )
    raise ConflictError(
        f"Cannot change {label} from {current.value} to {target.value}",
        details={
            "current_status": current.value,
            "requested_status": target.value,
            "allowed": sorted(s.value for s in allowed_transitions(entity, current)),
        },
    )
