from fastapi import Depends

from agency_crm.auth.deps import get_current_user
from agency_crm.errors import InsufficientPermissionsError
from agency_crm.models.enums import Action, Resource
from agency_crm.models.user import User
from agency_crm.rbac.engine import AuthorizationEngine, authz

def get_authz() -> AuthorizationEngine:
    return authz

def require_perm(resource: Resource, action: Action):
    """Coarse route guard; instance checks happen in the services."""
    resource = Resource(resource)
    action = Action(action)

    def _checker(
        user: User = Depends(get_current_user),
        engine: AuthorizationEngine = Depends(get_authz),
    ) -> User:
        if not engine.has_permission(user.role, resource, action):
            raise InsufficientPermissionsError(
                f"role {user.role.value} may not {action.value} {resource.value}"
            )
        return user

    return _checker
