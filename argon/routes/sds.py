from fastapi import APIRouter, Depends, HTTPException, Request, Response, UploadFile

from argon.models import Chemical
from argon.routes.dependencies import tenant_chemical
from argon.services.chemicals import attach_uploaded_sds
from argon.services.sds_update import SdsUpdater
from argon.utils.storage import Storage

router = APIRouter(prefix="/chemicals/{chemical_id}/sds")


@router.get("")
async def get_sds_url(request: Request, chemical: Chemical = Depends(tenant_chemical)) -> Response:
    storage: Storage = request.state.storage

    if not chemical.sds_key:
        raise HTTPException(status_code=404, detail="No SDS stored for this chemical")

    return {"sds_key": chemical.sds_key, "url": await storage.get_url(chemical.sds_key)}


@router.post("")
async def upload_sds(request: Request, file: UploadFile,
                     chemical: Chemical = Depends(tenant_chemical)) -> Response:
    db = request.state.db

    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Empty file")

    extracted = await attach_uploaded_sds(
        db,
        chemical,
        content,
        storage=request.state.storage,
        parser=request.state.parser,
    )
    await db.commit()

    return {
        "sds_key": chemical.sds_key,
        "confidence": extracted.confidence,
        "extracted": extracted.model_dump(mode="json"),
    }


@router.post("/check")
async def check_sds(request: Request, chemical: Chemical = Depends(tenant_chemical)) -> Response:
    updater: SdsUpdater = request.state.sds_updater
    return await updater.manual_check_chemical(chemical.id, chemical.tenant_id)


@router.post("/refresh")
async def refresh_sds(request: Request, chemical: Chemical = Depends(tenant_chemical)) -> Response:
    updater: SdsUpdater = request.state.sds_updater
    return await updater.check_and_update_on_create(chemical.id, chemical.tenant_id)
