import hmac

from fastapi import Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from whodies.core.config import settings
from whodies.db.session import get_session


async def get_db() -> AsyncSession:
    async for session in get_session():
        yield session


async def require_cron_secret(authorization: str | None = Header(default=None)) -> None:
    """Bearer check for trigger and ops endpoints; an unset secret locks them entirely."""
    secret = settings.cron_secret
    if not secret or not authorization or not hmac.compare_digest(authorization, f"Bearer {secret}"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
