from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel, ConfigDict

from argon.models import Chemical, ChemicalStatus, SubstitutionPriority
from argon.routes.dependencies import tenant_chemical, tenant_id
from argon.services import chemicals

router = APIRouter(prefix="/chemicals")


class ChemicalOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    product_name: str
    supplier: str | None = None
    cas_number: str | None = None
    ec_number: str | None = None
    sds_key: str | None = None
    sds_date: datetime | None = None
    sds_version: str | None = None
    hazard_statements: str | None = None
    precautionary_statements: str | None = None
    hazard_level: int | None = None
    is_cmr: bool = False
    is_svhc: bool = False
    reach_status: str | None = None
    substitution_priority: SubstitutionPriority | None = None
    status: ChemicalStatus
    next_review_date: datetime | None = None
    last_verified_at: datetime | None = None
    last_echa_sync: datetime | None = None


@router.get("/{chemical_id}")
async def get_chemical(chemical: Chemical = Depends(tenant_chemical)) -> Response:
    return ChemicalOut.model_validate(chemical)


@router.post("/{chemical_id}/verify")
async def verify_chemical(request: Request, chemical_id: str,
                          tenant: str = Depends(tenant_id)) -> Response:
    db = request.state.db

    chemical = await chemicals.verify_chemical(db, chemical_id, tenant)
    if chemical is None:
        raise HTTPException(status_code=404, detail="Chemical not found")
    await db.commit()

    return ChemicalOut.model_validate(chemical)
