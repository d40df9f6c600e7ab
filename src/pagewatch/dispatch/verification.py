"""Authentication of inbound phase invocations.

A phase endpoint accepts a request when one of these holds, checked in order:

1. ``x-local-dev: true`` while running in dev mode.
2. ``Authorization: Bearer <cron_secret>``.
3. Dev mode with neither a cron secret nor a signing key configured.
4. A valid ``Upstash-Signature`` JWT, signed with the current or the next
   signing key, whose claims bind it to this URL and this exact body.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from typing import TYPE_CHECKING

import jwt

from pagewatch.dispatch.endpoints import LOCAL_DEV_HEADER, SIGNATURE_HEADER
from pagewatch.main.exceptions import AuthenticationException
from pagewatch.main.logging import get_logger

if TYPE_CHECKING:
    from fastapi import Request

    from pagewatch.main.config import Settings

logger = get_logger(__name__)

SIGNATURE_ISSUER = "Upstash"
SIGNATURE_ALGORITHMS = ["HS256"]


def body_digest(body: bytes) -> str:
    """Unpadded base64url SHA-256 of the raw body, as carried in the ``body`` claim."""
    return base64.urlsafe_b64encode(hashlib.sha256(body).digest()).decode().rstrip("=")


def _secret_matches(authorization: str | None, secret: str | None) -> bool:
    if not authorization or not secret:
        return False
    return hmac.compare_digest(authorization.encode(), f"Bearer {secret}".encode())


class RequestVerifier:
    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    @property
    def _signing_keys(self) -> list[str]:
        return [
            key
            for key in (
                self._settings.qstash_current_signing_key,
                self._settings.qstash_next_signing_key,
            )
            if key
        ]

    def public_url(self, request: Request) -> str:
        """The URL the dispatcher signed, i.e. the one it was asked to deliver to."""
        if self._settings.base_url:
            return f"{self._settings.base_url}{request.url.path}"
        return str(request.url)

    def verify_phase_request(self, request: Request, body: bytes) -> str:
        """Authenticate a phase invocation. Returns the method that accepted it."""
        settings = self._settings

        if request.headers.get(LOCAL_DEV_HEADER) == "true" and settings.dev:
            logger.debug("Local dev request, skipping verification")
            return "local"

        if _secret_matches(request.headers.get("authorization"), settings.cron_secret):
            return "secret"

        if settings.dev and not settings.cron_secret and not self._signing_keys:
            logger.debug("No secrets configured in dev mode, allowing request")
            return "dev"

        signature = request.headers.get(SIGNATURE_HEADER)
        if not signature:
            raise AuthenticationException("Missing request signature")

        self.verify_signature(signature, body, self.public_url(request))
        return "signature"

    def verify_secret(self, request: Request) -> str:
        """Authenticate an operator endpoint (trigger, reset) by shared secret."""
        if _secret_matches(request.headers.get("authorization"), self._settings.cron_secret):
            return "secret"

        if self._settings.dev and not self._settings.cron_secret:
            return "dev"

        raise AuthenticationException("Invalid or missing shared secret")

    def verify_signature(self, signature: str, body: bytes, url: str) -> dict:
        keys = self._signing_keys
        if not keys:
            logger.error("Signed request received but no signing keys are configured")
            raise AuthenticationException("Signing keys not configured")

        last_error: Exception | None = None
        for key in keys:
            try:
                claims = jwt.decode(
                    signature,
                    key=key,
                    algorithms=SIGNATURE_ALGORITHMS,
                    issuer=SIGNATURE_ISSUER,
                    options={"require": ["exp", "iss", "sub", "body"]},
                )
            except jwt.InvalidSignatureError as e:
                # Possibly signed with the other key during rotation
                last_error = e
                continue
            except jwt.PyJWTError as e:
                logger.warning("Rejected request signature", extra={"error": str(e)})
                raise AuthenticationException("Invalid request signature") from e

            if claims["sub"] != url:
                logger.warning(
                    "Request signature bound to another URL",
                    extra={"expected": url, "received": claims["sub"]},
                )
                raise AuthenticationException("Signature URL mismatch")

            if not hmac.compare_digest(str(claims["body"]).rstrip("="), body_digest(body)):
                logger.warning("Request body does not match its signature")
                raise AuthenticationException("Signature body mismatch")

            return claims

        logger.warning("Request signature did not match any signing key", extra={"error": str(last_error)})
        raise AuthenticationException("Invalid request signature")
