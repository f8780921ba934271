"""
Google ID token verification.

The token is checked by Google's tokeninfo endpoint; we then make sure it
was minted for our client, by Google, and has not expired.
"""

import time
from dataclasses import dataclass

import httpx

from utils.logger import get_logger

logger = get_logger(__name__)

GOOGLE_ISSUERS = {"accounts.google.com", "https://accounts.google.com"}


@dataclass(frozen=True)
class IdentityAssertion:
    subject_id: str
    email: str
    name: str | None
    avatar_url: str | None
    email_verified: bool


class IdentityVerificationError(Exception):
    """The identity provider could not be reached or answered unexpectedly."""


class InvalidIdentityToken(IdentityVerificationError):
    """The identity provider rejected the token, or it is not meant for us."""


def _is_true(value) -> bool:
    # tokeninfo returns booleans as strings
    if isinstance(value, bool):
        return value
    return str(value).lower() == "true"


class GoogleIdentityVerifier:
    provider = "google"

    def __init__(
        self,
        client_id: str,
        tokeninfo_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.client_id = client_id
        self.tokeninfo_url = tokeninfo_url
        self.timeout = timeout
        self._transport = transport

    async def verify(self, id_token: str) -> IdentityAssertion:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(self.tokeninfo_url, params={"id_token": id_token})
        except httpx.HTTPError as e:
            raise IdentityVerificationError(f"tokeninfo request failed: {e}") from e

        if response.status_code == 400:
            raise InvalidIdentityToken("Invalid Google token")
        if response.status_code != 200:
            raise IdentityVerificationError(f"tokeninfo returned {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise IdentityVerificationError("tokeninfo returned malformed JSON") from e

        if not isinstance(payload, dict):
            raise IdentityVerificationError("tokeninfo returned unexpected payload")

        if not self.client_id or payload.get("aud") != self.client_id:
            logger.warning("Google token audience mismatch", extra={"aud": payload.get("aud")})
            raise InvalidIdentityToken("Invalid Google token")

        if payload.get("iss") not in GOOGLE_ISSUERS:
            raise InvalidIdentityToken("Invalid Google token")

        try:
            expires_at = int(payload.get("exp", 0))
        except (TypeError, ValueError):
            expires_at = 0
        if expires_at <= time.time():
            raise InvalidIdentityToken("Google token expired")

        subject_id = payload.get("sub")
        email = payload.get("email")
        if not subject_id or not email:
            raise InvalidIdentityToken("Invalid Google token")

        return IdentityAssertion(
            subject_id=str(subject_id),
            email=email,
            name=payload.get("name"),
            avatar_url=payload.get("picture"),
            email_verified=_is_true(payload.get("email_verified")),
        )
