"""
FastAPI dependencies for the Mehfil service
"""
from typing import Optional
from fastapi import HTTPException, Header, status

from mehfil.config import settings


async def verify_admin_key(x_api_key: Optional[str] = Header(None)) -> Optional[str]:
    """Verify API key for admin endpoints. Disabled when ADMIN_API_KEY is empty."""
    if not settings.ADMIN_API_KEY:
        return None
    if not x_api_key or x_api_key != settings.ADMIN_API_KEY:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key"
        )
    return x_api_key


async def get_operator(x_operator: Optional[str] = Header(None)) -> str:
    """Identity recorded as checkedInBy on scans."""
    operator = (x_operator or "").strip()
    return operator or settings.DEFAULT_OPERATOR
