"""Automatic SDS updates.

1. When a chemical is registered its SDS is checked against the supplier
   right away and replaced if a newer revision exists.
2. Every week all active chemicals of all active tenants are checked the
   same way, throttled, with one summary notification per tenant.
"""
import logging
from typing import Callable

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from argon.models import (
    Chemical,
    ChemicalStatus,
    NotificationType,
    Tenant,
    TenantStatus
)
from argon.services.chemicals import (
    apply_extracted_data,
    apply_substance,
    get_chemical,
    update_substitution_priority
)
from argon.services.notifications import find_recipients, notify_users
from argon.utils.batch import ErrorPolicy, for_each
from argon.utils.dates import utcnow
from argon.utils.echa import SubstanceLookup
from argon.utils.ratelimit import TokenBucket
from argon.utils.sds import SdsParser
from argon.utils.storage import Storage, sds_storage_key
from argon.utils.suppliers import SupplierSdsInfo, SupplierSdsManager


class UpdateResult(BaseModel):
    success: bool
    message: str
    was_updated: bool = False
    new_version: str | None = None


class ManualCheckResult(BaseModel):
    success: bool
    message: str
    has_update: bool = False
    current_version: str | None = None
    available_version: str | None = None


class TenantSweepResult(BaseModel):
    tenant_id: str
    tenant_name: str
    checked: int = 0
    updated: int = 0
    failed: int = 0


class WeeklySweepReport(BaseModel):
    success: bool = True
    total_checked: int = 0
    total_updated: int = 0
    tenant_results: list[TenantSweepResult] = []


class SdsUpdater:
    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        suppliers: SupplierSdsManager,
        storage: Storage,
        parser: SdsParser,
        substances: SubstanceLookup | None = None,
        rate_limiter: TokenBucket | None = None,
        logger: logging.Logger | None = None,
        clock: Callable = utcnow,
    ):
        self.session_factory = session_factory
        self.suppliers = suppliers
        self.storage = storage
        self.parser = parser
        self.substances = substances
        self.rate_limiter = rate_limiter
        self.log = logger or logging.getLogger("argon.sds")
        self.clock = clock

    async def _refresh(self, session: AsyncSession, chemical: Chemical, sds_info: SupplierSdsInfo) -> bool:
        """Downloads, stores, parses and records a newer SDS for ``chemical``.

        Returns False when the supplier did not hand over the document.
        """
        content = await self.suppliers.download_updated_sds(chemical.supplier, chemical.cas_number)
        if content is None:
            self.log.warning("Could not download SDS %s for %s from %s",
                             sds_info.sds_version, chemical.product_name, chemical.supplier)
            return False

        key = sds_storage_key(chemical.tenant_id, chemical.id)
        await self.storage.upload(key, content, content_type="application/pdf")
        # TODO: delete the uploaded object when parsing or the row update below fails
        extracted = await self.parser.parse(content)

        substance = None
        if self.substances is not None:
            substance = await self.substances.search_by_cas(chemical.cas_number)

        now = self.clock()
        chemical.sds_key = key
        chemical.sds_date = sds_info.sds_last_updated or now
        chemical.sds_version = sds_info.sds_version
        chemical.last_echa_sync = now
        if substance is not None:
            apply_substance(chemical, substance)
        apply_extracted_data(chemical, extracted)
        update_substitution_priority(chemical)

        await session.flush()
        self.log.info("Updated SDS for %s to version %s", chemical.product_name, sds_info.sds_version)
        return True

    async def check_and_update_on_create(self, chemical_id: str, tenant_id: str) -> UpdateResult:
        """Replaces a newly registered chemical's SDS if the supplier has a newer one.

        Never raises; failures are logged and reported in the result so the
        registration itself is not blocked.
        """
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    chemical = await get_chemical(session, chemical_id, tenant_id)
                    if chemical is None:
                        return UpdateResult(success=False, message="Chemical not found")

                    if not chemical.supplier or not chemical.cas_number:
                        return UpdateResult(
                            success=True,
                            message="No supplier or CAS number registered. Cannot check for updates.",
                        )

                    check = await self.suppliers.check_for_updates(
                        chemical.supplier, chemical.cas_number, chemical.sds_date,
                    )
                    if not check.has_update or check.sds_info is None:
                        return UpdateResult(success=True, message="Already on the latest SDS version")

                    sds_info = check.sds_info
                    self.log.info("Newer SDS found for %s: %s", chemical.product_name, sds_info.sds_version)

                    if not await self._refresh(session, chemical, sds_info):
                        return UpdateResult(success=False, message="Could not download the updated SDS")

                    recipients = await find_recipients(session, tenant_id)
                    await notify_users(
                        session,
                        tenant_id,
                        recipients,
                        type=NotificationType.CHEMICAL_SDS_REVIEW,
                        title=f"SDS updated automatically: {chemical.product_name}",
                        message=(
                            f"A newer version ({sds_info.sds_version}) was found at "
                            f"{chemical.supplier} and downloaded automatically."
                        ),
                        link=f"/dashboard/chemicals/{chemical.id}",
                    )

            return UpdateResult(
                success=True,
                message=f"Updated to version {sds_info.sds_version}",
                was_updated=True,
                new_version=sds_info.sds_version,
            )
        except Exception:
            self.log.exception("Failed to check/update SDS for chemical %s", chemical_id)
            return UpdateResult(success=False, message="Failed to check the SDS version")

    async def manual_check_chemical(self, chemical_id: str, tenant_id: str) -> ManualCheckResult:
        """Reports whether a newer SDS exists without downloading anything."""
        try:
            async with self.session_factory() as session:
                chemical = await get_chemical(session, chemical_id, tenant_id)

            if chemical is None:
                return ManualCheckResult(success=False, message="Chemical not found")

            if not chemical.supplier or not chemical.cas_number:
                return ManualCheckResult(success=False, message="Missing supplier or CAS number")

            check = await self.suppliers.check_for_updates(
                chemical.supplier, chemical.cas_number, chemical.sds_date,
            )
            current_version = chemical.sds_version or "Unknown"

            if not check.has_update:
                return ManualCheckResult(
                    success=True,
                    message="Already on the latest version",
                    current_version=current_version,
                )

            return ManualCheckResult(
                success=True,
                message="A new version is available",
                has_update=True,
                current_version=current_version,
                available_version=(check.sds_info and check.sds_info.sds_version) or "Unknown",
            )
        except Exception:
            self.log.exception("Manual SDS check failed for chemical %s", chemical_id)
            return ManualCheckResult(success=False, message="Failed to check the SDS version")

    async def _check_chemical(self, tenant_id: str, chemical_id: str) -> bool:
        async with self.session_factory() as session:
            async with session.begin():
                chemical = await get_chemical(session, chemical_id, tenant_id)
                if chemical is None:
                    return False

                check = await self.suppliers.check_for_updates(
                    chemical.supplier, chemical.cas_number, chemical.sds_date,
                )
                if not check.has_update or check.sds_info is None:
                    return False

                return await self._refresh(session, chemical, check.sds_info)

    async def _send_weekly_report(self, tenant_id: str, checked: int, updated: int) -> None:
        async with self.session_factory() as session:
            async with session.begin():
                recipients = await find_recipients(session, tenant_id, email_opt_in=True)
                await notify_users(
                    session,
                    tenant_id,
                    recipients,
                    type=NotificationType.CHEMICAL_SDS_REVIEW,
                    title=f"Weekly SDS report: {updated} updates",
                    message=(
                        f"Checked {checked} chemicals and updated {updated} "
                        "safety data sheets automatically."
                    ),
                    link="/dashboard/chemicals",
                )

    async def _sweep_tenant(self, tenant: Tenant) -> TenantSweepResult:
        async with self.session_factory() as session:
            stmt = (
                select(Chemical.id, Chemical.product_name)
                .where(
                    Chemical.tenant_id == tenant.id,
                    Chemical.status == ChemicalStatus.ACTIVE,
                    Chemical.supplier.is_not(None),
                    Chemical.cas_number.is_not(None),
                )
                .order_by(Chemical.product_name, Chemical.id)
            )
            chemicals = (await session.execute(stmt)).all()

        outcome = await for_each(
            chemicals,
            lambda row: self._check_chemical(tenant.id, row.id),
            policy=ErrorPolicy.CONTINUE,
            limiter=self.rate_limiter,
            describe=lambda row: f"{row.product_name} ({tenant.name})",
            logger=self.log,
        )

        result = TenantSweepResult(
            tenant_id=tenant.id,
            tenant_name=tenant.name,
            checked=outcome.attempted,
            updated=sum(1 for updated in outcome.results if updated),
            failed=len(outcome.errors),
        )

        if result.checked > 0:
            await self._send_weekly_report(tenant.id, result.checked, result.updated)

        self.log.info("%s: %d checked, %d updated, %d failed",
                      tenant.name, result.checked, result.updated, result.failed)
        return result

    async def weekly_check_all_chemicals(self) -> WeeklySweepReport:
        """Checks every active chemical of every active tenant for a newer SDS."""
        self.log.info("Weekly SDS check started")

        async with self.session_factory() as session:
            stmt = (
                select(Tenant)
                .where(Tenant.status == TenantStatus.ACTIVE)
                .order_by(Tenant.name, Tenant.id)
            )
            tenants = list((await session.scalars(stmt)).all())

        report = WeeklySweepReport()
        for tenant in tenants:
            result = await self._sweep_tenant(tenant)
            report.total_checked += result.checked
            report.total_updated += result.updated
            report.tenant_results.append(result)

        self.log.info("Weekly SDS check finished: %d checked, %d updated",
                      report.total_checked, report.total_updated)
        return report
