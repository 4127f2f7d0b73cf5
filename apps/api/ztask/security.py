from __future__ import annotations

import hashlib
import hmac
import secrets

from ztask.config import settings

API_TOKEN_PREFIX = "ztpat_"
INVITATION_TOKEN_PREFIX = "ztinv_"


def _keyed_hash(value: str) -> str:
  # HMAC keyed with APP_SECRET; raw tokens are never stored.
  key = (settings.app_secret or "").encode("utf-8")
  msg = (value or "").strip().encode("utf-8")
  return hmac.new(key, msg, hashlib.sha256).hexdigest()


def api_token_new() -> str:
  return API_TOKEN_PREFIX + secrets.token_urlsafe(32)


def api_token_hash(token: str) -> str:
  return _keyed_hash(token)


def token_hint(token: str) -> str:
  t = (token or "").strip()
  if len(t) <= 6:
    return t
  return f"…{t[-6:]}"


def invitation_token_new() -> str:
  return INVITATION_TOKEN_PREFIX + secrets.token_urlsafe(24)


def invitation_token_hash(token: str) -> str:
  return _keyed_hash(token)
