"""
Tests for api/v1/settings.py - the organization's Stripe key.
"""
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import HTTPException

from stripe_assistant.api.deps import require_admin
from stripe_assistant.api.v1 import settings as settings_api
from stripe_assistant.schemas.settings import StripeKeyUpdate
from stripe_assistant.services.stripe_client import KEY_PREVIEW, StripeKeyError


@pytest.fixture
def organization():
    return SimpleNamespace(id="org_default", name="Default Organization", stripe_secret_key=None)


@pytest.fixture
def org_db(mock_db_session, make_scalar_result, organization):
    mock_db_session.execute.return_value = make_scalar_result(organization)
    return mock_db_session


class TestRequireAdmin:

    @pytest.mark.asyncio
    async def test_admin_passes(self, mock_admin):
        assert await require_admin(current_user=mock_admin) is mock_admin

    @pytest.mark.asyncio
    async def test_member_is_forbidden(self, mock_user):
        with pytest.raises(HTTPException) as exc_info:
            await require_admin(current_user=mock_user)

        assert exc_info.value.status_code == 403
        assert exc_info.value.detail == "Admin privileges required"


class TestKeyStatus:

    @pytest.mark.asyncio
    async def test_no_key(self, org_db, mock_admin):
        result = await settings_api.get_stripe_key_status(db=org_db, current_user=mock_admin)

        assert result.has_key is False
        assert result.key_preview is None

    @pytest.mark.asyncio
    async def test_key_is_masked(self, org_db, organization, mock_admin):
        organization.stripe_secret_key = "sk_test_abcdefghijklmnop"

        result = await settings_api.get_stripe_key_status(db=org_db, current_user=mock_admin)

        assert result.has_key is True
        assert result.key_preview == KEY_PREVIEW
        assert "abcdefghijklmnop" not in result.model_dump_json(by_alias=True)

    @pytest.mark.asyncio
    async def test_missing_organization(self, mock_db_session, make_scalar_result, mock_admin):
        mock_db_session.execute.return_value = make_scalar_result(None)

        with pytest.raises(HTTPException) as exc_info:
            await settings_api.get_stripe_key_status(db=mock_db_session, current_user=mock_admin)

        assert exc_info.value.status_code == 404


class TestSaveKey:

    async def _save(self, db, user, secret_key, request):
        return await settings_api.save_stripe_key(
            request=request,
            response=MagicMock(),
            key_in=StripeKeyUpdate(secretKey=secret_key),
            db=db,
            current_user=user,
        )

    @pytest.mark.asyncio
    async def test_valid_test_key_is_stored(self, org_db, organization, mock_admin, mock_request):
        with patch.object(settings_api, "verify_secret_key", new_callable=AsyncMock) as verify:
            result = await self._save(org_db, mock_admin, "  sk_test_valid  ", mock_request)

        verify.assert_awaited_once_with("sk_test_valid")
        assert organization.stripe_secret_key == "sk_test_valid"
        assert result == {"success": True, "message": "Stripe key saved"}
        org_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_live_key_is_rejected_without_calling_stripe(self, org_db, organization, mock_admin, mock_request):
        with patch.object(settings_api, "verify_secret_key", new_callable=AsyncMock) as verify:
            with pytest.raises(HTTPException) as exc_info:
                await self._save(org_db, mock_admin, "sk_live_real", mock_request)

        assert exc_info.value.status_code == 400
        assert "Live keys" in exc_info.value.detail
        verify.assert_not_awaited()
        assert organization.stripe_secret_key is None

    @pytest.mark.asyncio
    async def test_wrong_format(self, org_db, mock_admin, mock_request):
        with pytest.raises(HTTPException) as exc_info:
            await self._save(org_db, mock_admin, "pk_test_publishable", mock_request)

        assert exc_info.value.status_code == 400
        assert "Invalid key format" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_key_rejected_by_stripe(self, org_db, organization, mock_admin, mock_request):
        failure = StripeKeyError("The Stripe key is invalid. Enter a valid secret key.")
        with patch.object(settings_api, "verify_secret_key", new_callable=AsyncMock, side_effect=failure):
            with pytest.raises(HTTPException) as exc_info:
                await self._save(org_db, mock_admin, "sk_test_revoked", mock_request)

        assert exc_info.value.status_code == 400
        assert "invalid" in exc_info.value.detail
        assert organization.stripe_secret_key is None
        org_db.commit.assert_not_awaited()

    def test_request_body_uses_camel_case(self):
        assert StripeKeyUpdate(secretKey="sk_test_x").secret_key == "sk_test_x"


class TestDeleteKey:

    @pytest.mark.asyncio
    async def test_delete(self, org_db, organization, mock_admin, mock_request):
        organization.stripe_secret_key = "sk_test_valid"

        result = await settings_api.delete_stripe_key(
            request=mock_request, response=MagicMock(), db=org_db, current_user=mock_admin
        )

        assert organization.stripe_secret_key is None
        assert result["success"] is True
