"""Tests for the get_current_telegram_id auth dependency.

Verifies:
- a valid x-telegram-initdata header yields the Telegram user id
- a missing header raises 401 missing_initdata
- verifier failures raise 401 with the reason and no debug preview
"""

import time

import pytest
from fastapi import HTTPException

from conftest import TEST_USER, build_init_data
from workout_log_api.auth import get_current_telegram_id, verify_or_raise
from workout_log_api.config import Settings


# ---------------------------------------------------------------------------
# Header dependency
# ---------------------------------------------------------------------------


class TestGate:

    @pytest.mark.asyncio
    async def test_valid_header_returns_user_id(self, settings):
        telegram_id = await get_current_telegram_id(
            x_telegram_initdata=build_init_data(),
            settings=settings,
        )
        assert telegram_id == TEST_USER["id"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("header", [None, ""])
    async def test_missing_header_raises_401(self, settings, header):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_telegram_id(x_telegram_initdata=header, settings=settings)
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail["reason"] == "missing_initdata"

    @pytest.mark.asyncio
    async def test_bad_signature_raises_401_without_debug(self, settings):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_telegram_id(
                x_telegram_initdata=build_init_data(bot_token="1:other"),
                settings=settings,
            )
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail["reason"] == "hash_mismatch"
        assert "debug" not in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_missing_bot_token_raises_401(self, monkeypatch):
        monkeypatch.delenv("BOT_TOKEN")
        with pytest.raises(HTTPException) as exc_info:
            await get_current_telegram_id(
                x_telegram_initdata=build_init_data(),
                settings=Settings(),
            )
        assert exc_info.value.detail["reason"] == "empty_botToken"

    @pytest.mark.asyncio
    async def test_configured_max_age_is_used(self, monkeypatch):
        monkeypatch.setenv("INITDATA_MAX_AGE_SECONDS", "60")
        stale = build_init_data(auth_date=int(time.time()) - 600)
        with pytest.raises(HTTPException) as exc_info:
            await get_current_telegram_id(x_telegram_initdata=stale, settings=Settings())
        assert exc_info.value.detail["reason"] == "auth_date_expired"


# ---------------------------------------------------------------------------
# verify_or_raise
# ---------------------------------------------------------------------------


class TestVerifyOrRaise:

    def test_debug_preview_outside_production(self, settings):
        with pytest.raises(HTTPException) as exc_info:
            verify_or_raise(build_init_data(bot_token="1:other"), settings, include_debug=True)
        assert exc_info.value.detail["debug"]["incomingPreview"]

    def test_no_debug_preview_in_production(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        with pytest.raises(HTTPException) as exc_info:
            verify_or_raise(build_init_data(bot_token="1:other"), Settings(), include_debug=True)
        assert exc_info.value.detail["reason"] == "hash_mismatch"
        assert "debug" not in exc_info.value.detail

    def test_success_returns_result(self, settings):
        result = verify_or_raise(build_init_data(), settings)
        assert result.ok is True
        assert result.principal.id == TEST_USER["id"]
