"""Chemical register alerts.

Two tenant-wide sweeps that tell ADMIN and HMS users when the register needs
work: safety data sheets older than three years or due for review, and
hazardous chemicals that need a substitution assessment.
"""
import logging
from datetime import datetime
from typing import Callable

from pydantic import BaseModel
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from argon.models import (
    Chemical,
    ChemicalStatus,
    NotificationType,
    SubstitutionPriority,
    Tenant,
    TenantStatus
)
from argon.services.notifications import find_recipients, notify_users
from argon.utils.batch import ErrorPolicy, for_each
from argon.utils.dates import days_from, utcnow
from argon.utils.email import EmailSender
from argon.utils.templater import Templater

# Arbeidstilsynet recommends renewing an SDS every three years
OUTDATED_SDS_DAYS = 3 * 365
REVIEW_WINDOW_DAYS = 30
EMAIL_LIST_LIMIT = 5


class TenantAlert(BaseModel):
    notified: int = 0
    emailed: int = 0
    errors: int = 0


class AlertRunResult(BaseModel):
    tenants_processed: int = 0
    tenants_flagged: int = 0
    notifications_created: int = 0
    emails_sent: int = 0
    errors: int = 0


def outdated_criteria(now: datetime):
    return or_(
        Chemical.sds_date < days_from(now, -OUTDATED_SDS_DAYS),
        and_(
            Chemical.next_review_date > now,
            Chemical.next_review_date <= days_from(now, REVIEW_WINDOW_DAYS),
        ),
    )


def high_risk_criteria():
    return or_(
        Chemical.is_cmr.is_(True),
        Chemical.is_svhc.is_(True),
        Chemical.substitution_priority == SubstitutionPriority.HIGH,
    )


class ChemicalAlerts:
    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        sender: EmailSender,
        templater: Templater,
        app_name: str = "HMS Nova",
        app_url: str = "https://www.hmsnova.no",
        logger: logging.Logger | None = None,
        clock: Callable = utcnow,
    ):
        self.session_factory = session_factory
        self.sender = sender
        self.templater = templater
        self.app_name = app_name
        self.app_url = app_url.rstrip("/")
        self.log = logger or logging.getLogger("argon.alerts")
        self.clock = clock

    async def _active_tenants(self) -> list[Tenant]:
        async with self.session_factory() as session:
            stmt = (
                select(Tenant)
                .where(Tenant.status == TenantStatus.ACTIVE)
                .order_by(Tenant.name, Tenant.id)
            )
            return list((await session.scalars(stmt)).all())

    async def _flagged_chemicals(self, tenant_id: str, criterion) -> list[Chemical]:
        async with self.session_factory() as session:
            stmt = (
                select(Chemical)
                .where(
                    Chemical.tenant_id == tenant_id,
                    Chemical.status == ChemicalStatus.ACTIVE,
                    criterion,
                )
                .order_by(Chemical.product_name, Chemical.id)
            )
            return list((await session.scalars(stmt)).all())

    async def _notify(self, tenant: Tenant, *, title: str, message: str, link: str,
                      subject: str, template: str, **context) -> TenantAlert:
        """Notifies the tenant's opted-in ADMIN/HMS users in-app, then by email."""
        async with self.session_factory() as session:
            async with session.begin():
                recipients = await find_recipients(session, tenant.id, email_opt_in=True)
                await notify_users(
                    session,
                    tenant.id,
                    recipients,
                    type=NotificationType.CHEMICAL_SDS_REVIEW,
                    title=title,
                    message=message,
                    link=link,
                )

        outcome = await for_each(
            recipients,
            lambda user: self.sender.send_email(
                to=user.email,
                subject=subject,
                html=self.templater.render(
                    template,
                    user=user,
                    app_name=self.app_name,
                    app_url=self.app_url,
                    link=link,
                    **context,
                ),
            ),
            policy=ErrorPolicy.CONTINUE,
            describe=lambda user: f"{subject!r} to {user.email}",
            logger=self.log,
        )
        return TenantAlert(
            notified=len(recipients),
            emailed=len(outcome.results),
            errors=len(outcome.errors),
        )

    async def _run(self, name: str, alert: Callable) -> AlertRunResult:
        tenants = await self._active_tenants()
        outcome = await for_each(
            tenants,
            alert,
            policy=ErrorPolicy.CONTINUE,
            describe=lambda tenant: f"{name} for {tenant.name}",
            logger=self.log,
        )

        result = AlertRunResult(tenants_processed=len(tenants), errors=len(outcome.errors))
        for tenant_alert in outcome.results:
            if tenant_alert is None:
                continue
            result.tenants_flagged += 1
            result.notifications_created += tenant_alert.notified
            result.emails_sent += tenant_alert.emailed
            result.errors += tenant_alert.errors

        self.log.info("%s completed for %d tenants: %d flagged, %d errors",
                      name, result.tenants_processed, result.tenants_flagged, result.errors)
        return result

    async def check_outdated_sds(self) -> AlertRunResult:
        """Flags ACTIVE chemicals whose SDS is older than three years or whose review is due within 30 days."""
        now = self.clock()
        stale_before = days_from(now, -OUTDATED_SDS_DAYS)

        async def alert(tenant: Tenant) -> TenantAlert | None:
            chemicals = await self._flagged_chemicals(tenant.id, outdated_criteria(now))
            if not chemicals:
                return None

            return await self._notify(
                tenant,
                title="Chemical register needs updating",
                message=(
                    f"{len(chemicals)} chemical(s) have an outdated safety data sheet "
                    "or are due for review."
                ),
                link="/dashboard/chemicals",
                subject=f"{self.app_name}: Chemical register needs updating",
                template="outdated_sds.html",
                chemicals=chemicals[:EMAIL_LIST_LIMIT],
                total=len(chemicals),
                remaining=max(0, len(chemicals) - EMAIL_LIST_LIMIT),
                stale_before=stale_before,
            )

        return await self._run("Outdated SDS check", alert)

    async def check_cmr_and_substitution(self) -> AlertRunResult:
        """Flags ACTIVE CMR, SVHC and high-priority chemicals for a substitution assessment."""

        async def alert(tenant: Tenant) -> TenantAlert | None:
            chemicals = await self._flagged_chemicals(tenant.id, high_risk_criteria())
            if not chemicals:
                return None

            cmr_count = sum(1 for chemical in chemicals if chemical.is_cmr)
            svhc_count = sum(1 for chemical in chemicals if chemical.is_svhc)
            return await self._notify(
                tenant,
                title="Hazardous chemicals need a substitution assessment",
                message=(
                    f"You have {cmr_count} CMR and {svhc_count} SVHC substance(s) "
                    "that should be considered for replacement."
                ),
                link="/dashboard/chemicals?filter=high-risk",
                subject=f"{self.app_name}: Substitution assessment required",
                template="substitution.html",
                chemicals=chemicals[:EMAIL_LIST_LIMIT],
                remaining=max(0, len(chemicals) - EMAIL_LIST_LIMIT),
                cmr_count=cmr_count,
                svhc_count=svhc_count,
            )

        return await self._run("CMR/SVHC check", alert)
