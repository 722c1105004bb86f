from collections.abc import Iterable, Mapping
from types import MappingProxyType

from agency_crm.models.enums import Action, Resource, Role

Permission = tuple[Resource, Action]
PermissionTable = Mapping[Role, frozenset[Permission]]

def _grants(*pairs: str) -> frozenset[Permission]:
    out: set[Permission] = set()
    for pair in pairs:
        resource, action = pair.split(":")
        out.add((Resource(resource), Action(action)))
    return frozenset(out)

def build_permission_table(raw: Mapping[Role, Iterable[Permission]]) -> PermissionTable:
    return MappingProxyType({role: frozenset(perms) for role, perms in raw.items()})

# built once at import, never mutated
PERMS: PermissionTable = build_permission_table({
    Role.admin: _grants(*(f"{r.value}:manage" for r in Resource)),
    Role.manager: _grants(
        "users:read",
        "clients:manage",
        "campaigns:manage",
        "tasks:manage",
        "invoices:read",
        "expenses:read",
        "reports:manage",
        "analytics:read",
    ),
    Role.team_member: _grants(
        "clients:read",
        "campaigns:read",
        "tasks:manage",
        "invoices:read",
    ),
    Role.finance: _grants(
        "clients:read",
        "campaigns:read",
        "invoices:manage",
        "expenses:manage",
        "reports:read",
        "analytics:read",
    ),
    Role.client_viewer: _grants(
        "clients:read",
        "campaigns:read",
        "invoices:read",
    ),
})

def _coerce(role, resource, action) -> tuple[Role, Resource, Action] | None:
    try:
        return Role(role), Resource(resource), Action(action)
    except ValueError:
        return None

def has_permission(role, resource, action, table: PermissionTable = PERMS) -> bool:
    # unknown role/resource/action fails closed
    coerced = _coerce(role, resource, action)
    if coerced is None:
        return False
    role, resource, action = coerced

    granted = table.get(role, frozenset())
    return (resource, Action.manage) in granted or (resource, action) in granted

def get_permissions(role, table: PermissionTable = PERMS) -> frozenset[Permission]:
    try:
        return table.get(Role(role), frozenset())
    except ValueError:
        return frozenset()

def can_access_resource(role, resource, table: PermissionTable = PERMS) -> bool:
    try:
        resource = Resource(resource)
    except ValueError:
        return False
    return any(r == resource for r, _ in get_permissions(role, table))
