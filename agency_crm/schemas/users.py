import uuid

from pydantic import BaseModel, ConfigDict

from agency_crm.models.enums import Role

class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    name: str | None
    role: Role

class RoleUpdateIn(BaseModel):
    role: Role
