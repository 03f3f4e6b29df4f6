"""
Tests for provider account linking (login / join with invite).
"""

import uuid
from datetime import datetime, timedelta, timezone

import bcrypt
import pytest
from unittest.mock import AsyncMock, MagicMock

from auth.accounts import (
    AccountError,
    _hash_password,
    join_with_provider,
    login_with_provider,
)
from auth.jwt import InvalidToken, verify_token
from database.models import Invite, User, Workspace, WorkspaceMember


def _result(value):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


def _db(*results, workspace=None):
    db = MagicMock()
    db.execute = AsyncMock(side_effect=[_result(r) for r in results])
    db.flush = AsyncMock()
    db.get = AsyncMock(return_value=workspace)
    return db


def _workspace():
    return Workspace(
        workspace_id=uuid.uuid4(),
        name="acme-ws",
        product_id="prod",
        endpoint="wss://acme.example.com/ws",
    )


def _invite(workspace, **fields):
    values = dict(
        invite_id=uuid.uuid4(),
        workspace_id=workspace.workspace_id,
        email_mask="",
        use_limit=None,
        used=0,
        expires_at=None,
    )
    values.update(fields)
    return Invite(**values)


class TestLoginWithProvider:
    @pytest.mark.asyncio
    async def test_creates_confirmed_account(self):
        db = _db(None)

        info = await login_with_provider(db, "prod", None, " A@B.com ", "A", "")

        created = db.add.call_args.args[0]
        assert isinstance(created, User)
        assert created.email == "a@b.com"
        assert created.display_name == "A"
        assert created.confirmed is True
        assert created.password_hash == ""
        assert info.email == "a@b.com"
        payload = verify_token(info.token)
        assert payload["email"] == "a@b.com"
        assert payload["product_id"] == "prod"
        assert "workspace" not in payload

    @pytest.mark.asyncio
    async def test_existing_account(self):
        user = User(user_id=uuid.uuid4(), email="a@b.com", display_name="A", confirmed=False)
        db = _db(user)

        info = await login_with_provider(db, "prod", None, "a@b.com", None, "")

        db.add.assert_not_called()
        assert user.confirmed is True
        assert verify_token(info.token)["user_id"] == str(user.user_id)

    @pytest.mark.asyncio
    async def test_missing_name_uses_email(self):
        db = _db(None)
        await login_with_provider(db, "prod", None, "a@b.com", None, "")
        assert db.add.call_args.args[0].display_name == "a@b.com"


class TestJoinWithProvider:
    @pytest.mark.asyncio
    async def test_joins_workspace(self):
        workspace = _workspace()
        invite = _invite(workspace, use_limit=5, used=1)
        db = _db(invite, None, None, workspace=workspace)

        info = await join_with_provider(db, "prod", None, "a@b.com", "A", "", str(invite.invite_id))

        added = [call.args[0] for call in db.add.call_args_list]
        assert any(isinstance(obj, User) for obj in added)
        assert any(isinstance(obj, WorkspaceMember) for obj in added)
        assert invite.used == 2
        assert info.workspace == "acme-ws"
        assert info.endpoint == "wss://acme.example.com/ws"
        assert verify_token(info.token)["workspace"] == "acme-ws"

    @pytest.mark.asyncio
    async def test_existing_member_does_not_consume_invite(self):
        workspace = _workspace()
        invite = _invite(workspace, use_limit=1, used=0)
        user = User(user_id=uuid.uuid4(), email="a@b.com", confirmed=True)
        member = WorkspaceMember(workspace_id=workspace.workspace_id, user_id=user.user_id)
        db = _db(invite, user, member, workspace=workspace)

        await join_with_provider(db, "prod", None, "a@b.com", "A", "", str(invite.invite_id))

        db.add.assert_not_called()
        assert invite.used == 0

    @pytest.mark.asyncio
    async def test_malformed_invite_id(self):
        with pytest.raises(AccountError) as info:
            await join_with_provider(_db(), "prod", None, "a@b.com", "A", "", "inv1")
        assert info.value.code == "invite_not_found"

    @pytest.mark.asyncio
    async def test_unknown_invite(self):
        with pytest.raises(AccountError) as info:
            await join_with_provider(_db(None), "prod", None, "a@b.com", "A", "", str(uuid.uuid4()))
        assert info.value.code == "invite_not_found"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "fields, code",
        [
            ({"expires_at": datetime.now(timezone.utc) - timedelta(days=1)}, "invite_expired"),
            ({"use_limit": 2, "used": 2}, "invite_exhausted"),
            ({"email_mask": r"@acme\.com$"}, "invite_email_mismatch"),
        ],
    )
    async def test_rejected_invites(self, fields, code):
        workspace = _workspace()
        invite = _invite(workspace, **fields)
        db = _db(invite, workspace=workspace)

        with pytest.raises(AccountError) as info:
            await join_with_provider(db, "prod", None, "a@b.com", "A", "", str(invite.invite_id))

        assert info.value.code == code
        db.add.assert_not_called()


class TestPasswordAndTokens:
    def test_empty_password_has_no_hash(self):
        assert _hash_password("") == ""

    def test_password_is_bcrypt_hashed(self):
        hashed = _hash_password("s3cret")
        assert bcrypt.checkpw(b"s3cret", hashed.encode())

    def test_tampered_token(self):
        from auth.jwt import create_token

        token = create_token("u1", "a@b.com")
        with pytest.raises(InvalidToken):
            verify_token(token[:-1] + ("0" if token[-1] != "0" else "1"))
