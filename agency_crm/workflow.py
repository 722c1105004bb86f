from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType
from typing import TypeVar

from agency_crm.errors import InvalidTransitionError
from agency_crm.models.enums import CampaignStatus, ExpenseStatus, InvoiceStatus, TaskStatus

logger = logging.getLogger("agency-crm.workflow")

S = TypeVar("S", bound=Enum)

# current status -> statuses it may move to; terminal statuses map to nothing.
# same-state requests are not in any table and get rejected.

TASK_TRANSITIONS: Mapping[TaskStatus, frozenset[TaskStatus]] = MappingProxyType({
    TaskStatus.not_started: frozenset({TaskStatus.in_progress, TaskStatus.cancelled}),
    TaskStatus.in_progress: frozenset({
        TaskStatus.under_review,
        TaskStatus.completed,
        TaskStatus.blocked,
        TaskStatus.cancelled,
    }),
    TaskStatus.under_review: frozenset({TaskStatus.completed, TaskStatus.in_progress, TaskStatus.cancelled}),
    TaskStatus.blocked: frozenset({TaskStatus.in_progress, TaskStatus.cancelled}),
    TaskStatus.completed: frozenset(),
    TaskStatus.cancelled: frozenset(),
})

CAMPAIGN_TRANSITIONS: Mapping[CampaignStatus, frozenset[CampaignStatus]] = MappingProxyType({
    CampaignStatus.planning: frozenset({CampaignStatus.active, CampaignStatus.cancelled}),
    CampaignStatus.active: frozenset({CampaignStatus.paused, CampaignStatus.completed, CampaignStatus.cancelled}),
    CampaignStatus.paused: frozenset({CampaignStatus.active, CampaignStatus.completed, CampaignStatus.cancelled}),
    CampaignStatus.completed: frozenset(),
    CampaignStatus.cancelled: frozenset(),
})

INVOICE_TRANSITIONS: Mapping[InvoiceStatus, frozenset[InvoiceStatus]] = MappingProxyType({
    InvoiceStatus.draft: frozenset({InvoiceStatus.sent, InvoiceStatus.cancelled}),
    InvoiceStatus.sent: frozenset({InvoiceStatus.paid, InvoiceStatus.overdue, InvoiceStatus.cancelled}),
    InvoiceStatus.overdue: frozenset({InvoiceStatus.paid, InvoiceStatus.cancelled}),
    InvoiceStatus.paid: frozenset(),
    InvoiceStatus.cancelled: frozenset(),
})

EXPENSE_TRANSITIONS: Mapping[ExpenseStatus, frozenset[ExpenseStatus]] = MappingProxyType({
    ExpenseStatus.pending: frozenset({ExpenseStatus.approved, ExpenseStatus.rejected}),
    ExpenseStatus.approved: frozenset(),
    ExpenseStatus.rejected: frozenset(),
})

def allowed_transitions(table: Mapping[S, frozenset[S]], current: S) -> list[S]:
    # enum declaration order keeps error messages stable
    allowed = table.get(current, frozenset())
    return [s for s in type(current) if s in allowed]

def can_transition(table: Mapping[S, frozenset[S]], current: S, new: S) -> bool:
    return new in table.get(current, frozenset())

def is_terminal(table: Mapping[S, frozenset[S]], status: S) -> bool:
    return not table.get(status)

def validate_transition(table: Mapping[S, frozenset[S]], current: S, new: S) -> None:
    if not can_transition(table, current, new):
        logger.info("rejected transition %s -> %s", current.value, new.value)
        raise InvalidTransitionError(current, new, allowed_transitions(table, current))
