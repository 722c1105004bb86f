import logging
import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from agency_crm.auth.deps import get_current_user
from agency_crm.db import get_db
from agency_crm.errors import NotFoundError
from agency_crm.models.enums import Action, Resource
from agency_crm.models.user import User
from agency_crm.rbac.deps import require_perm
from agency_crm.rbac.perms import get_permissions
from agency_crm.schemas.users import RoleUpdateIn, UserOut

logger = logging.getLogger("agency-crm.users")

router = APIRouter(prefix="/api/users", tags=["users"])

@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)) -> UserOut:
    return UserOut.model_validate(user)

@router.get("/me/permissions")
def my_permissions(user: User = Depends(get_current_user)) -> dict:
    perms = sorted(f"{r.value}:{a.value}" for r, a in get_permissions(user.role))
    return {"role": user.role.value, "permissions": perms}

@router.patch("/{user_id}/role", response_model=UserOut)
def update_role(
    user_id: uuid.UUID,
    payload: RoleUpdateIn,
    actor: User = Depends(require_perm(Resource.users, Action.manage)),
    db: Session = Depends(get_db),
) -> UserOut:
    target = db.get(User, user_id)
    if target is None:
        raise NotFoundError("user", user_id)

    old = target.role
    target.role = payload.role
    db.commit()
    db.refresh(target)
    logger.info("user %s role %s -> %s by %s", target.id, old.value, target.role.value, actor.id)
    return UserOut.model_validate(target)
