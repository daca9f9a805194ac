"""
Identity resolution for incoming requests.

Provides:
- ``extract_bearer_token`` -- pulls the token out of an ``Authorization`` header.
- ``JWTIdentityProvider``  -- verifies a token issued by the external identity
  provider and returns the opaque user id it carries.

LeakScan never manages accounts itself.  The user id found in a valid token
is trusted as given and stored verbatim on every scan and finding.
"""

from __future__ import annotations

from typing import Optional

import jwt

from leakscan.core.exceptions import AuthenticationError

# ── Constants ────────────────────────────────────────────────────────────────

_BEARER_PREFIX: str = "bearer "
_USER_ID_CLAIM: str = "sub"


# ── Header Parsing ───────────────────────────────────────────────────────────

def extract_bearer_token(authorization: Optional[str]) -> str:
    """Return the token part of an ``Authorization: Bearer <token>`` header.

    Args:
        authorization: The raw header value, or ``None`` when absent.

    Returns:
        The stripped token string.

    Raises:
        AuthenticationError: If the header is missing, uses another scheme,
            or carries an empty token.
    """
    if not authorization:
        raise AuthenticationError("User is not authenticated.")

    if not authorization.lower().startswith(_BEARER_PREFIX):
        raise AuthenticationError("Authorization header must use the Bearer scheme.")

    token: str = authorization[len(_BEARER_PREFIX):].strip()
    if not token:
        raise AuthenticationError("User is not authenticated.")
    return token


# ── Identity Provider ────────────────────────────────────────────────────────

class JWTIdentityProvider:
    """Resolve bearer tokens signed by the identity provider to user ids.

    Example::

        provider = JWTIdentityProvider(secret="...", algorithm="HS256")
        user_id = provider.resolve(token)

    Attributes:
        secret: Shared signing secret of the identity provider.
        algorithm: JWS algorithm the tokens are signed with.
        audience: Expected ``aud`` claim, or ``None`` to skip the check.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        audience: Optional[str] = None,
    ) -> None:
        self.secret: str = secret
        self.algorithm: str = algorithm
        self.audience: Optional[str] = audience

    def resolve(self, token: str) -> str:
        """Verify *token* and return the user id stored in its ``sub`` claim.

        Args:
            token: The encoded JWT.

        Returns:
            The opaque user identifier.

        Raises:
            AuthenticationError: If the signature, expiry, or audience check
                fails, or the token carries no subject.
        """
        options = {"require": ["exp", _USER_ID_CLAIM]}
        if self.audience is None:
            options["verify_aud"] = False  # type: ignore[assignment]

        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                options=options,
            )
        except jwt.ExpiredSignatureError as exc:
            raise AuthenticationError("Unauthorized: Token has expired.") from exc
        except jwt.InvalidTokenError as exc:
            raise AuthenticationError("Unauthorized: Invalid token.") from exc

        user_id = claims.get(_USER_ID_CLAIM)
        if not isinstance(user_id, str) or not user_id.strip():
            raise AuthenticationError("Unauthorized: Invalid token.")
        return user_id
