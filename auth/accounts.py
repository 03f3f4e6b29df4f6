"""
Account linking for external identity providers.

``login_with_provider`` signs a user in by e-mail, creating the account
on first use; ``join_with_provider`` does the same and additionally
accepts a workspace invite.  Both return a ``LoginInfo`` that the
provider callback stores in the browser session.
"""

from __future__ import annotations

import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import bcrypt
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth.jwt import create_token
from database.models import Invite, User, Workspace, WorkspaceMember

logger = logging.getLogger(__name__)


class AccountError(Exception):
    """Account operation rejected; ``code`` is a stable machine-readable reason."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


class LoginInfo(BaseModel):
    email: str
    token: str
    endpoint: str = ""
    workspace: Optional[str] = None

    def to_session(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def _hash_password(password: str) -> str:
    """bcrypt hash, or an empty hash when no password was supplied."""
    if not password:
        return ""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=12)).decode()


async def _get_or_create_user(
    db: AsyncSession,
    email: str,
    first: Optional[str],
    password: str,
) -> User:
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is not None:
        if not user.confirmed:
            # the provider has vouched for this address
            user.confirmed = True
        return user

    user = User(
        user_id=uuid.uuid4(),
        email=email,
        display_name=first or email,
        password_hash=_hash_password(password),
        confirmed=True,
    )
    db.add(user)
    await db.flush()
    logger.info("Created account %s via provider", email)
    return user


async def login_with_provider(
    db: AsyncSession,
    product_id: str,
    provider_token: Optional[str],
    email: str,
    first: Optional[str],
    password: str,
) -> LoginInfo:
    """Sign in (creating the account when needed) an e-mail vouched for by a provider."""
    email = _normalize_email(email)
    user = await _get_or_create_user(db, email, first, password)
    token = create_token(str(user.user_id), email, product_id)
    logger.info("Provider login: %s (%s)", email, user.user_id)
    return LoginInfo(email=email, token=token)


def _check_invite(invite: Optional[Invite], email: str) -> Invite:
    if invite is None:
        raise AccountError("invite_not_found", "Invite not found")
    if invite.expires_at is not None and invite.expires_at < datetime.now(timezone.utc):
        raise AccountError("invite_expired", "Invite has expired")
    if invite.use_limit is not None and invite.used >= invite.use_limit:
        raise AccountError("invite_exhausted", "Invite has no uses left")
    if invite.email_mask and not re.search(invite.email_mask, email):
        raise AccountError("invite_email_mismatch", "Invite is not valid for this e-mail")
    return invite


async def join_with_provider(
    db: AsyncSession,
    product_id: str,
    provider_token: Optional[str],
    email: str,
    first: Optional[str],
    password: str,
    invite_id: str,
) -> LoginInfo:
    """
    Accept a workspace invite for a provider-authenticated e-mail.

    Raises ``AccountError`` when the invite is unknown, expired, used up,
    or restricted to other addresses.
    """
    email = _normalize_email(email)
    try:
        invite_uuid = uuid.UUID(invite_id)
    except ValueError as exc:
        raise AccountError("invite_not_found", "Invite not found") from exc

    result = await db.execute(select(Invite).where(Invite.invite_id == invite_uuid))
    invite = _check_invite(result.scalar_one_or_none(), email)

    workspace = await db.get(Workspace, invite.workspace_id)
    if workspace is None:
        raise AccountError("workspace_not_found", "Workspace not found")

    user = await _get_or_create_user(db, email, first, password)

    result = await db.execute(
        select(WorkspaceMember).where(
            WorkspaceMember.workspace_id == workspace.workspace_id,
            WorkspaceMember.user_id == user.user_id,
        )
    )
    if result.scalar_one_or_none() is None:
        db.add(WorkspaceMember(workspace_id=workspace.workspace_id, user_id=user.user_id))
        invite.used = (invite.used or 0) + 1
        await db.flush()
        logger.info("Joined %s to workspace %s (invite %s)", email, workspace.name, invite_id)

    token = create_token(str(user.user_id), email, product_id, workspace=workspace.name)
    return LoginInfo(
        email=email,
        token=token,
        endpoint=workspace.endpoint,
        workspace=workspace.name,
    )
