from pydantic import BaseModel, EmailStr, Field

from agency_crm.models.enums import Role

class RequestLinkIn(BaseModel):
    email: EmailStr
    # only used when the sign-in creates the account
    name: str | None = Field(default=None, max_length=200)

class RequestLinkOut(BaseModel):
    sent: bool = True
    token: str | None = None
    link: str | None = None

class RedeemIn(BaseModel):
    token: str

class AccessTokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: Role
