from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from sqlalchemy.orm import Session

from agency_crm.models.campaign import Campaign
from agency_crm.models.client import Client
from agency_crm.models.enums import Resource, Role
from agency_crm.models.expense import Expense
from agency_crm.models.invoice import Invoice
from agency_crm.models.task import Task

# resources without a resolver are decided by the role table alone

class OwnershipResolver(ABC):
    model: type
    # singular name used in not-found errors
    kind: str
    # roles that see every instance once the role table allows the action
    privileged: frozenset[Role] = frozenset()

    def load(self, db: Session, resource_id: uuid.UUID) -> Any | None:
        obj = db.get(self.model, resource_id)
        if obj is None or getattr(obj, "deleted_at", None) is not None:
            return None
        return obj

    @abstractmethod
    def is_owner(self, obj: Any, user_id: uuid.UUID) -> bool: ...

    def allows(self, role: Role, user_id: uuid.UUID, obj: Any) -> bool:
        return role in self.privileged or self.is_owner(obj, user_id)

class ClientOwnership(OwnershipResolver):
    model = Client
    kind = "client"
    privileged = frozenset({Role.manager})

    def is_owner(self, obj: Client, user_id: uuid.UUID) -> bool:
        return obj.owner_id == user_id

class CreatorOrAssignee(OwnershipResolver):
    privileged = frozenset({Role.manager})

    def __init__(self, model: type, kind: str):
        self.model = model
        self.kind = kind

    def is_owner(self, obj: Any, user_id: uuid.UUID) -> bool:
        return obj.created_by_id == user_id or obj.assigned_to_id == user_id

class CreatorOnly(OwnershipResolver):
    privileged = frozenset({Role.finance})

    def __init__(self, model: type, kind: str):
        self.model = model
        self.kind = kind

    def is_owner(self, obj: Any, user_id: uuid.UUID) -> bool:
        return obj.created_by_id == user_id

OWNERSHIP_RESOLVERS: Mapping[Resource, OwnershipResolver] = MappingProxyType({
    Resource.clients: ClientOwnership(),
    Resource.campaigns: CreatorOrAssignee(Campaign, "campaign"),
    Resource.tasks: CreatorOrAssignee(Task, "task"),
    Resource.invoices: CreatorOnly(Invoice, "invoice"),
    Resource.expenses: CreatorOnly(Expense, "expense"),
})
