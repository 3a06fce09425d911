"""
Telegram Mini App initData verification.

Implements the data-check procedure from
https://core.telegram.org/bots/webapps#validating-data-received-via-the-mini-app

    secret_key = HMAC_SHA256(key="WebAppData", msg=bot_token)
    hash       = HMAC_SHA256(key=secret_key, msg=data_check_string)

Everything here is pure: no I/O, no logging of secrets. Callers decide how a
failed verification maps onto HTTP.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from typing import Dict, List, Literal, Optional, Tuple
from urllib.parse import parse_qsl, unquote

from pydantic import BaseModel, ValidationError

AuthReason = Literal[
    "empty_initData",
    "empty_botToken",
    "no_hash",
    "auth_date_expired",
    "hash_mismatch",
    "no_user",
    "missing_initdata",
]

DEFAULT_MAX_AGE_SECONDS = 24 * 60 * 60
WEBAPP_KEY_CONSTANT = b"WebAppData"
DEBUG_PREVIEW_LENGTH = 10


class TelegramPrincipal(BaseModel):
    """Identity embedded in the ``user`` field of a verified initData."""
    id: int
    username: Optional[str] = None
    first_name: Optional[str] = None

    class Config:
        extra = "ignore"  # last_name, language_code, photo_url, ...


@dataclass
class VerificationResult:
    ok: bool
    reason: Optional[AuthReason] = None
    principal: Optional[TelegramPrincipal] = None
    debug: Optional[Dict[str, str]] = None


def _fail(reason: AuthReason, debug: Optional[Dict[str, str]] = None) -> VerificationResult:
    return VerificationResult(ok=False, reason=reason, debug=debug)


def parse_init_data(init_data: str) -> List[Tuple[str, str]]:
    """
    Parse initData into ordered (key, value) pairs.

    The normal form is a query string whose values are percent-encoded once.
    Some clients forward it encoded a second time (``hash%3D...``); in that
    case one strict decode pass is applied first. If that pass fails the raw
    string is parsed as-is.
    """
    text = init_data
    if "hash=" not in text and "%3D" in text.upper():
        try:
            text = unquote(init_data, errors="strict")
        except UnicodeDecodeError:
            text = init_data
    return parse_qsl(text, keep_blank_values=True)


def build_data_check_string(pairs: List[Tuple[str, str]]) -> str:
    """Sort by key (codepoint order, stable) and join ``key=value`` with newlines."""
    ordered = sorted(pairs, key=lambda kv: kv[0])
    return "\n".join(f"{k}={v}" for k, v in ordered)


def derive_secret_key(bot_token: str) -> bytes:
    return hmac.new(WEBAPP_KEY_CONSTANT, bot_token.encode("utf-8"), hashlib.sha256).digest()


def compute_signatures(data_check_string: str, bot_token: str) -> Tuple[str, str]:
    """Return the signature as (lowercase hex, unpadded base64-url)."""
    digest = hmac.new(
        derive_secret_key(bot_token),
        data_check_string.encode("utf-8"),
        hashlib.sha256,
    ).digest()
    b64url = base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")
    return digest.hex(), b64url


def safe_equals(a: str, b: str) -> bool:
    """Constant-time string comparison; unequal lengths are simply False."""
    left = a.encode("utf-8")
    right = b.encode("utf-8")
    if len(left) != len(right):
        return False
    return hmac.compare_digest(left, right)


def _parse_principal(raw_user: Optional[str]) -> Optional[TelegramPrincipal]:
    if not raw_user:
        return None
    try:
        data = json.loads(raw_user)
    except ValueError:
        return None
    if not isinstance(data, dict) or isinstance(data.get("id"), bool):
        return None
    try:
        return TelegramPrincipal.model_validate(data)
    except ValidationError:
        return None


def verify_init_data(
    init_data: Optional[str],
    bot_token: Optional[str],
    max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS,
    now: Optional[float] = None,
) -> VerificationResult:
    """
    Verify a Telegram Mini App initData payload.

    Args:
        init_data: Raw initData string as sent by ``Telegram.WebApp.initData``
        bot_token: Bot token the payload was signed for
        max_age_seconds: Maximum accepted age of ``auth_date``
        now: Current unix time, for tests

    Returns:
        VerificationResult with ``principal`` set on success, or ``reason``
        (and for ``hash_mismatch`` a short ``debug`` preview) on failure.
    """
    if not init_data or not isinstance(init_data, str):
        return _fail("empty_initData")
    if not bot_token or not isinstance(bot_token, str) or not bot_token.strip():
        return _fail("empty_botToken")
    token = bot_token.strip()

    pairs = parse_init_data(init_data)

    incoming = next((v for k, v in pairs if k == "hash"), None)
    if not incoming:
        return _fail("no_hash")
    fields = [(k, v) for k, v in pairs if k != "hash"]

    auth_date = next((v for k, v in fields if k == "auth_date"), None)
    if auth_date:
        try:
            issued_at = float(auth_date)
        except ValueError:
            issued_at = None
        current = time.time() if now is None else now
        if issued_at is not None and current - issued_at > max_age_seconds:
            return _fail("auth_date_expired")

    computed_hex, computed_b64 = compute_signatures(build_data_check_string(fields), token)

    received = incoming.strip()
    received_lower = received.lower()
    matched = (
        safe_equals(computed_hex, received_lower)
        or safe_equals(computed_b64, received)
        or safe_equals(computed_b64, received_lower)
    )
    if not matched:
        return _fail(
            "hash_mismatch",
            debug={
                "incomingPreview": received[:DEBUG_PREVIEW_LENGTH],
                "computedHexPreview": computed_hex[:DEBUG_PREVIEW_LENGTH],
                "computedB64Preview": computed_b64[:DEBUG_PREVIEW_LENGTH],
            },
        )

    principal = _parse_principal(next((v for k, v in fields if k == "user"), None))
    if principal is None:
        return _fail("no_user")

    return VerificationResult(ok=True, principal=principal)


def extract_unverified_user_id(init_data: Optional[str]) -> Optional[int]:
    """
    Read the user id from initData without checking the signature.

    Only for log context; never use the result for authorization.
    """
    if not init_data:
        return None
    principal = _parse_principal(dict(parse_init_data(init_data)).get("user"))
    return principal.id if principal else None
