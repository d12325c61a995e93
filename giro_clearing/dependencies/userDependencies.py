from typing import Annotated, Optional
from fastapi import Depends, Header, HTTPException, status


def get_actor_id(x_user_id: Optional[str] = Header(None, alias="X-User-ID")) -> str:
    """Identifier of the user performing a write, taken from the X-User-ID header"""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing X-User-ID header"
        )
    return x_user_id.strip()


actor_dependency = Annotated[str, Depends(get_actor_id)]
