from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from enum import Enum

from sqlalchemy.orm import Session

from agency_crm.errors import InsufficientPermissionsError, NotFoundError
from agency_crm.models.enums import Action, Resource, Role
from agency_crm.models.user import User
from agency_crm.rbac.ownership import OWNERSHIP_RESOLVERS, OwnershipResolver
from agency_crm.rbac.perms import PERMS, PermissionTable, has_permission

logger = logging.getLogger("agency-crm.rbac")

class AccessDecision(str, Enum):
    allowed = "allowed"
    denied = "denied"
    not_found = "not_found"

class AuthorizationEngine:
    def __init__(
        self,
        permissions: PermissionTable = PERMS,
        resolvers: Mapping[Resource, OwnershipResolver] = OWNERSHIP_RESOLVERS,
    ):
        self.permissions = permissions
        self.resolvers = resolvers

    def has_permission(self, role, resource, action) -> bool:
        return has_permission(role, resource, action, self.permissions)

    def sees_all(self, role, resource) -> bool:
        """Whether list queries for this role skip the ownership filter."""
        role = Role(role)
        if role == Role.admin:
            return True
        resolver = self.resolvers.get(Resource(resource))
        if resolver is None:
            return True
        return role in resolver.privileged

    def check_resource_access(
        self,
        db: Session,
        user_id: uuid.UUID,
        resource,
        resource_id: uuid.UUID,
        action,
    ) -> AccessDecision:
        user = db.get(User, user_id)
        if user is None:
            return AccessDecision.denied

        role = user.role
        if role == Role.admin:
            return AccessDecision.allowed

        if not self.has_permission(role, resource, action):
            return AccessDecision.denied

        resolver = self.resolvers.get(Resource(resource))
        if resolver is None:
            return AccessDecision.allowed

        obj = resolver.load(db, resource_id)
        if obj is None:
            return AccessDecision.not_found

        if resolver.allows(role, user_id, obj):
            return AccessDecision.allowed
        return AccessDecision.denied

    def require_resource_access(
        self,
        db: Session,
        user_id: uuid.UUID,
        resource,
        resource_id: uuid.UUID,
        action,
    ) -> None:
        decision = self.check_resource_access(db, user_id, resource, resource_id, action)
        if decision is AccessDecision.allowed:
            return

        resource = Resource(resource)
        if decision is AccessDecision.not_found:
            raise NotFoundError(self.resolvers[resource].kind, resource_id)

        logger.info(
            "denied %s:%s on %s for user %s",
            resource.value,
            Action(action).value,
            resource_id,
            user_id,
        )
        raise InsufficientPermissionsError()

authz = AuthorizationEngine()
