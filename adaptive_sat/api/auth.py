"""Identity of the calling test-taker.

Login and token handling live in front of this service; by the time a
request reaches the exam routes the gateway has verified the user and set
the `X-User-Id` header.
"""

from typing import Annotated

from fastapi import Header, HTTPException, status


async def get_current_user_id(
    x_user_id: Annotated[str | None, Header()] = None,
) -> str:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return x_user_id.strip()

