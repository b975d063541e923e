from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from argon.constants import JOBS_TOKEN
from argon.models import Chemical
from argon.services.chemicals import get_chemical


def tenant_id(x_tenant_id: str = Header()) -> str:
    """Tenant the request acts for; resolved upstream by the session layer."""
    return x_tenant_id


async def tenant_chemical(chemical_id: str, request: Request,
                          tenant: str = Depends(tenant_id)) -> Chemical:
    db: AsyncSession = request.state.db
    chemical = await get_chemical(db, chemical_id, tenant)
    if chemical is None:
        raise HTTPException(status_code=404, detail="Chemical not found")
    return chemical


def job_token(authorization: str | None = Header(default=None)) -> None:
    if JOBS_TOKEN and authorization != f"Bearer {JOBS_TOKEN}":
        raise HTTPException(status_code=401, detail="Invalid job token")
