"""Bearer token verification.

The core only consumes a claims mapping; ``JWTClaimsVerifier`` is the
adapter that produces one from a signed JWT.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

from jose import JWTError, jwt

from transcodehub.core.exceptions import AuthenticationError

logger = logging.getLogger(__name__)


class ClaimsVerifier(ABC):
    """Turns a bearer credential into verified claims."""

    @abstractmethod
    def verify(self, token: str) -> dict[str, Any]:
        """Return the token's claims.

        Raises:
            AuthenticationError: If the token cannot be verified
        """


class JWTClaimsVerifier(ClaimsVerifier):
    """Verifies HMAC/RSA signed JWTs against a rotation list of keys.

    The first secret is the current one; the rest are legacy keys that stay
    valid until they are removed from configuration.
    """

    def __init__(
        self,
        secrets: Sequence[str],
        algorithms: Sequence[str] = ("HS256",),
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
    ):
        if not secrets:
            raise ValueError("At least one JWT secret is required")
        self.secrets = list(secrets)
        self.algorithms = list(algorithms)
        self.issuer = issuer
        self.audience = audience

    def verify(self, token: str) -> dict[str, Any]:
        if not token:
            raise AuthenticationError("Missing bearer token")

        options = {"verify_aud": self.audience is not None}
        last_error: Optional[JWTError] = None
        for secret in self.secrets:
            try:
                return jwt.decode(
                    token,
                    secret,
                    algorithms=self.algorithms,
                    audience=self.audience,
                    issuer=self.issuer,
                    options=options,
                )
            except JWTError as e:
                last_error = e

        logger.info("Rejected bearer token", extra={"reason": str(last_error)})
        raise AuthenticationError("Invalid or expired token", detail=str(last_error))


def verifier_from_settings(settings) -> JWTClaimsVerifier:
    return JWTClaimsVerifier(
        secrets=settings.JWT_SECRETS,
        algorithms=settings.JWT_ALGORITHMS,
        issuer=settings.JWT_ISSUER,
        audience=settings.JWT_AUDIENCE,
    )
