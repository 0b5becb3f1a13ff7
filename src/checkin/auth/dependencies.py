"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers (and the GraphQL
context getter) to resolve the caller's identity from the request.
The verifier lives on app.state so tests can swap it.
"""

from typing import Optional

from fastapi import Depends, Header, Request

from checkin.auth.verifier import Identity, TokenVerifier, extract_bearer


def get_verifier(request: Request) -> TokenVerifier:
    return request.app.state.verifier


async def get_identity_optional(
    authorization: Optional[str] = Header(None),
    verifier: TokenVerifier = Depends(get_verifier),
) -> Optional[Identity]:
    """Resolve the caller (optional — returns None if no valid auth).

    Learn: This is the "soft" auth dependency. Browsing events works
    without logging in, so a missing or bad token is not an error here.
    """
    return verifier.verify(extract_bearer(authorization))
