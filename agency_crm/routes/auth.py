from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from agency_crm.auth.magic_links import MagicLinkRejected, issue_magic_link, redeem_magic_link
from agency_crm.auth.tokens import issue_access_token
from agency_crm.config import settings
from agency_crm.db import get_db
from agency_crm.ratelimit import rate_limit
from agency_crm.schemas.auth import AccessTokenOut, RedeemIn, RequestLinkIn, RequestLinkOut

router = APIRouter(prefix="/auth", tags=["auth"])

request_link_limit = rate_limit(
    "auth:request_link",
    limit_per_window=settings.rate_limit_auth_request_link_per_min,
    window_seconds=60,
)
redeem_limit = rate_limit(
    "auth:redeem",
    limit_per_window=settings.rate_limit_auth_redeem_per_min,
    window_seconds=60,
)

@router.post("/request-link", response_model=RequestLinkOut, dependencies=[Depends(request_link_limit)])
def request_link(payload: RequestLinkIn, db: Session = Depends(get_db)) -> RequestLinkOut:
    token = issue_magic_link(db, payload.email, payload.name)

    # delivery is out of band; outside prod the token and link come back inline
    if settings.app_env == "prod":
        return RequestLinkOut()
    return RequestLinkOut(token=token, link=f"{settings.base_url}/auth/redeem?token={token}")

@router.post("/redeem", response_model=AccessTokenOut, dependencies=[Depends(redeem_limit)])
def redeem(payload: RedeemIn, db: Session = Depends(get_db)) -> AccessTokenOut:
    try:
        user = redeem_magic_link(db, payload.token)
    except MagicLinkRejected as e:
        raise HTTPException(status_code=400, detail=e.reason)

    return AccessTokenOut(access_token=issue_access_token(user), role=user.role)
