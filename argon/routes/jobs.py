from fastapi import APIRouter, Depends, Request, Response

from argon.routes.dependencies import job_token
from argon.services.chemical_alerts import ChemicalAlerts
from argon.services.digest import DigestMailer, DigestType
from argon.services.sds_update import SdsUpdater

router = APIRouter(prefix="/jobs", dependencies=[Depends(job_token)])


@router.post("/sds-weekly")
async def weekly_sds_check(request: Request) -> Response:
    updater: SdsUpdater = request.state.sds_updater
    return await updater.weekly_check_all_chemicals()


@router.post("/digest/{digest_type}")
async def send_digest(request: Request, digest_type: DigestType) -> Response:
    mailer: DigestMailer = request.state.digest_mailer
    return await mailer.send_digest_emails(digest_type)


@router.post("/chemicals/outdated-sds")
async def outdated_sds_check(request: Request) -> Response:
    alerts: ChemicalAlerts = request.state.chemical_alerts
    return await alerts.check_outdated_sds()


@router.post("/chemicals/substitution")
async def substitution_check(request: Request) -> Response:
    alerts: ChemicalAlerts = request.state.chemical_alerts
    return await alerts.check_cmr_and_substitution()
