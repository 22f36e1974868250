# roomboard/api/dependencies/caller_identity.py
from typing import Optional

from fastapi import Header, HTTPException, status


async def get_caller_email(
    user_email: Optional[str] = Header(
        default=None,
        alias="X-User-Email",
        description=(
            "Email of the signed-in user, set by the authenticating proxy in "
            "front of this service."
        ),
    ),
) -> str:
    """
    Dependency returning the caller's identity for mutating endpoints.

    Rules
    -----
    - Sign-in itself happens upstream; this service only reads the verified
      identity header.
    - Missing or blank header -> 401.
    - The email is returned trimmed and lower-cased.
    """
    caller = (user_email or "").strip().lower()
    if not caller:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="You must be signed in to manage meetings.",
        )
    return caller
