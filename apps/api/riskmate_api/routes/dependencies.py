"""Request-scoped dependencies shared by the routers."""

from typing import Optional

from fastapi import Header, HTTPException, status


async def get_organization_id(
    x_organization_id: Optional[str] = Header(None, alias="X-Organization-ID"),
) -> str:
    """Organization scope of the request."""
    if not x_organization_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Organization-ID header is required",
        )
    return x_organization_id
