"""Bearer credential verification.

Learn: A TokenVerifier tries a list of strategies in order and returns
the first identity found. The default chain is:

1. StaticTokenStrategy — exact lookup in a small table of demo tokens
2. JwtStrategy — signature + expiry check against the configured secret

verify() fails soft: any problem (unknown, malformed, expired, bad
signature) returns None instead of raising. Read paths treat None as
"anonymous", connection setup treats it as "refuse".
"""

from dataclasses import dataclass
from typing import Optional, Protocol

import structlog

from checkin.auth.jwt import TokenError, verify_token
from checkin.config import settings

logger = structlog.get_logger()


@dataclass(frozen=True)
class Identity:
    """Who a credential belongs to."""

    user_id: str
    email: str


class VerificationStrategy(Protocol):
    def resolve(self, credential: str) -> Optional[Identity]: ...


class StaticTokenStrategy:
    """Fixed credential → identity table, for demos only."""

    def __init__(self, table: dict[str, dict[str, str]]):
        self._table = {
            token: Identity(user_id=entry["user_id"], email=entry["email"])
            for token, entry in table.items()
        }

    def resolve(self, credential: str) -> Optional[Identity]:
        return self._table.get(credential)


class JwtStrategy:
    """Signed access tokens issued by register/login."""

    def resolve(self, credential: str) -> Optional[Identity]:
        try:
            payload = verify_token(credential)
        except TokenError as e:
            logger.debug("auth.jwt_rejected", error=str(e))
            return None

        # "userId" is the claim name older tokens were issued with.
        user_id = payload.get("sub") or payload.get("userId")
        if not user_id:
            return None
        return Identity(user_id=str(user_id), email=payload.get("email", ""))


class TokenVerifier:
    def __init__(self, strategies: list[VerificationStrategy]):
        self.strategies = strategies

    def verify(self, credential: Optional[str]) -> Optional[Identity]:
        if not credential:
            return None
        for strategy in self.strategies:
            identity = strategy.resolve(credential)
            if identity is not None:
                return identity
        return None


def build_verifier() -> TokenVerifier:
    """Verifier configured from settings (static tokens first, then JWT)."""
    strategies: list[VerificationStrategy] = []
    if settings.static_tokens_enabled:
        strategies.append(StaticTokenStrategy(settings.static_tokens))
    strategies.append(JwtStrategy())
    return TokenVerifier(strategies)


def extract_bearer(authorization: Optional[str]) -> Optional[str]:
    """Pull the token out of an `Authorization: Bearer <token>` header."""
    if not authorization:
        return None
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        return None
    return parts[1]
