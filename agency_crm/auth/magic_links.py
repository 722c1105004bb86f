"""Single-use magic-link sign-in.

Only an HMAC of each token is stored. Redemption is one conditional UPDATE
so two concurrent redeems of the same token cannot both succeed.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from agency_crm.auth.tokens import hash_magic_token, magic_link_expiry, new_magic_token, now_utc
from agency_crm.models.auth_magic_link import AuthMagicLink
from agency_crm.models.user import User

logger = logging.getLogger("agency-crm.auth")

class MagicLinkRejected(Exception):
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason

def _as_utc(dt: datetime) -> datetime:
    # sqlite hands back naive values; everything is stored in utc
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)

def get_or_create_user(db: Session, email: str, name: str | None = None) -> User:
    email = email.lower().strip()
    user = db.scalar(select(User).where(User.email == email))
    if user is None:
        # role falls back to the column default (team_member)
        user = User(email=email, name=name)
        db.add(user)
        db.flush()
        logger.info("created user %s on first sign-in", user.id)
    return user

def issue_magic_link(db: Session, email: str, name: str | None = None) -> str:
    """Store a fresh link for ``email`` and return the raw token. Commits."""
    user = get_or_create_user(db, email, name)

    token = new_magic_token()
    db.add(
        AuthMagicLink(
            token_hash=hash_magic_token(token),
            user_id=user.id,
            expires_at=magic_link_expiry(),
        )
    )
    db.commit()
    return token

def redeem_magic_link(db: Session, token: str) -> User:
    """Burn the link and return its user, or raise MagicLinkRejected."""
    token_hash = hash_magic_token(token.strip())
    now = now_utc()

    user_id = db.scalar(
        update(AuthMagicLink)
        .where(
            AuthMagicLink.token_hash == token_hash,
            AuthMagicLink.used_at.is_(None),
            AuthMagicLink.expires_at > now,
        )
        .values(used_at=now)
        .returning(AuthMagicLink.user_id)
        .execution_options(synchronize_session=False)
    )

    if user_id is None:
        # work out why, for the error message only
        row = db.get(AuthMagicLink, token_hash)
        if row is not None and row.used_at is not None:
            raise MagicLinkRejected("token already used")
        if row is not None and _as_utc(row.expires_at) <= now:
            raise MagicLinkRejected("token expired")
        raise MagicLinkRejected("invalid token")

    user = db.get(User, user_id)
    if user is None:
        raise MagicLinkRejected("invalid token")

    db.commit()
    return user
