"""Daily and weekly email digests.

Every opted-in user of every active tenant gets a summary of what needs
their attention. Nothing is persisted between runs; each run reads the
current deadlines, so a crashed run is simply repeated by the next one.
"""
import enum
import logging
from datetime import datetime
from typing import Callable

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from argon.models import (
    ActivityStatus,
    Audit,
    Chemical,
    ChemicalStatus,
    Document,
    DocumentStatus,
    Incident,
    IncidentStatus,
    Inspection,
    Measure,
    MeasureStatus,
    Meeting,
    MeetingParticipant,
    Notification,
    Risk,
    RiskStatus,
    Tenant,
    TenantStatus,
    Training,
    User,
    UserTenant
)
from argon.utils.batch import ErrorPolicy, for_each
from argon.utils.dates import days_from, end_of_day, start_of_day, utcnow
from argon.utils.email import EmailSender
from argon.utils.templater import Templater


class DigestType(str, enum.Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"


LOOKAHEAD_DAYS = {DigestType.DAILY: 7, DigestType.WEEKLY: 14}
STALE_INCIDENT_DAYS = 7
EXPIRY_WINDOW_DAYS = 30
REVIEW_WINDOW_DAYS = 30
LIST_LIMIT = 5

OPEN_INCIDENT = (IncidentStatus.OPEN, IncidentStatus.INVESTIGATING)
OPEN_MEASURE = (MeasureStatus.PENDING, MeasureStatus.IN_PROGRESS)
UPCOMING_ACTIVITY = (ActivityStatus.PLANNED, ActivityStatus.IN_PROGRESS)
OPEN_RISK = (RiskStatus.OPEN, RiskStatus.MITIGATING)


class DigestItem(BaseModel):
    title: str
    date: datetime
    type: str | None = None


class DigestData(BaseModel):
    user_id: str
    email: str
    name: str
    tenant_name: str
    overdue_incidents: int = 0
    open_incidents: int = 0
    overdue_measures: int = 0
    upcoming_measures: list[DigestItem] = []
    expiring_training: list[DigestItem] = []
    upcoming_inspections: list[DigestItem] = []
    upcoming_meetings: list[DigestItem] = []
    upcoming_audits: list[DigestItem] = []
    documents_needing_review: int = 0
    chemicals_needing_review: int = 0
    risks_needing_review: int = 0
    unread_notifications: int = 0


class DigestRunResult(BaseModel):
    digest_type: DigestType
    emails_sent: int = 0
    skipped: int = 0
    errors: int = 0


async def _count(session: AsyncSession, model, *criteria) -> int:
    stmt = select(func.count()).select_from(model).where(*criteria)
    return (await session.execute(stmt)).scalar_one()


async def _items(session: AsyncSession, model, date_column, *criteria, type_column=None) -> list[DigestItem]:
    columns = [model.title, date_column]
    if type_column is not None:
        columns.append(type_column)
    stmt = (
        select(*columns)
        .where(*criteria)
        .order_by(date_column)
        .limit(LIST_LIMIT)
    )
    rows = (await session.execute(stmt)).all()
    return [
        DigestItem(title=row[0], date=row[1], type=row[2] if type_column is not None else None)
        for row in rows
    ]


async def gather_digest_data(
    session: AsyncSession,
    user: User,
    tenant: Tenant,
    digest_type: DigestType,
    now: datetime | None = None,
) -> DigestData:
    """Collects everything needing ``user``'s attention in ``tenant``."""
    now = now or utcnow()
    today = start_of_day(now)
    horizon = end_of_day(days_from(now, LOOKAHEAD_DAYS[digest_type]))
    expiry_horizon = end_of_day(days_from(now, EXPIRY_WINDOW_DAYS))
    review_horizon = end_of_day(days_from(now, REVIEW_WINDOW_DAYS))

    return DigestData(
        user_id=user.id,
        email=user.email or "",
        name=user.name or "there",
        tenant_name=tenant.name,
        overdue_incidents=await _count(
            session, Incident,
            Incident.tenant_id == tenant.id,
            Incident.responsible_id == user.id,
            Incident.status.in_(OPEN_INCIDENT),
            Incident.created_at < days_from(now, -STALE_INCIDENT_DAYS),
        ),
        open_incidents=await _count(
            session, Incident,
            Incident.tenant_id == tenant.id,
            Incident.responsible_id == user.id,
            Incident.status.in_(OPEN_INCIDENT),
        ),
        overdue_measures=await _count(
            session, Measure,
            Measure.tenant_id == tenant.id,
            Measure.responsible_id == user.id,
            Measure.status.in_(OPEN_MEASURE),
            Measure.due_at < today,
        ),
        upcoming_measures=await _items(
            session, Measure, Measure.due_at,
            Measure.tenant_id == tenant.id,
            Measure.responsible_id == user.id,
            Measure.status.in_(OPEN_MEASURE),
            Measure.due_at.between(today, horizon),
        ),
        expiring_training=await _items(
            session, Training, Training.valid_until,
            Training.tenant_id == tenant.id,
            Training.user_id == user.id,
            Training.valid_until.between(today, expiry_horizon),
        ),
        upcoming_inspections=await _items(
            session, Inspection, Inspection.scheduled_date,
            Inspection.tenant_id == tenant.id,
            Inspection.conducted_by == user.id,
            Inspection.status.in_(UPCOMING_ACTIVITY),
            Inspection.scheduled_date.between(today, horizon),
        ),
        upcoming_meetings=await _items(
            session, Meeting, Meeting.scheduled_date,
            Meeting.tenant_id == tenant.id,
            Meeting.participants.any(MeetingParticipant.user_id == user.id),
            Meeting.status.in_(UPCOMING_ACTIVITY),
            Meeting.scheduled_date.between(today, horizon),
            type_column=Meeting.type,
        ),
        upcoming_audits=await _items(
            session, Audit, Audit.scheduled_date,
            Audit.tenant_id == tenant.id,
            Audit.lead_auditor_id == user.id,
            Audit.status == ActivityStatus.PLANNED,
            Audit.scheduled_date.between(today, horizon),
        ),
        documents_needing_review=await _count(
            session, Document,
            Document.tenant_id == tenant.id,
            Document.status == DocumentStatus.APPROVED,
            Document.next_review_date <= review_horizon,
        ),
        chemicals_needing_review=await _count(
            session, Chemical,
            Chemical.tenant_id == tenant.id,
            Chemical.status == ChemicalStatus.ACTIVE,
            Chemical.next_review_date <= review_horizon,
        ),
        risks_needing_review=await _count(
            session, Risk,
            Risk.tenant_id == tenant.id,
            Risk.status.in_(OPEN_RISK),
            Risk.next_review_date <= review_horizon,
        ),
        unread_notifications=await _count(
            session, Notification,
            Notification.tenant_id == tenant.id,
            Notification.user_id == user.id,
            Notification.is_read.is_(False),
        ),
    )


def has_content_to_report(data: DigestData) -> bool:
    """False when every count is zero and every list is empty."""
    return any((
        data.overdue_incidents,
        data.open_incidents,
        data.overdue_measures,
        data.upcoming_measures,
        data.expiring_training,
        data.upcoming_inspections,
        data.upcoming_meetings,
        data.upcoming_audits,
        data.documents_needing_review,
        data.chemicals_needing_review,
        data.risks_needing_review,
        data.unread_notifications,
    ))


def wants_digest(user: User, digest_type: DigestType) -> bool:
    if not user.email or not user.notify_by_email:
        return False
    if digest_type is DigestType.DAILY:
        return bool(user.daily_digest)
    return bool(user.weekly_digest)


class DigestMailer:
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
        self.log = logger or logging.getLogger("argon.digest")
        self.clock = clock

    def subject(self, data: DigestData, digest_type: DigestType) -> str:
        period = "Daily" if digest_type is DigestType.DAILY else "Weekly"
        return f"{self.app_name} - {period} digest for {data.tenant_name}"

    def render(self, data: DigestData, digest_type: DigestType, now: datetime) -> str:
        return self.templater.render(
            "digest.html",
            data=data,
            today=now,
            period_label="Daily" if digest_type is DigestType.DAILY else "Weekly",
            lookahead_days=LOOKAHEAD_DAYS[digest_type],
            app_name=self.app_name,
            app_url=self.app_url,
        )

    async def _send_one(self, user: User, tenant: Tenant, digest_type: DigestType) -> bool:
        now = self.clock()
        async with self.session_factory() as session:
            data = await gather_digest_data(session, user, tenant, digest_type, now)

        if not has_content_to_report(data):
            return False

        await self.sender.send_email(
            to=data.email,
            subject=self.subject(data, digest_type),
            html=self.render(data, digest_type, now),
        )
        return True

    async def send_digest_emails(self, digest_type: DigestType = DigestType.DAILY) -> DigestRunResult:
        self.log.info("Starting %s email digest", digest_type.value)

        async with self.session_factory() as session:
            stmt = (
                select(Tenant)
                .where(Tenant.status == TenantStatus.ACTIVE)
                .options(selectinload(Tenant.users).selectinload(UserTenant.user))
                .order_by(Tenant.name, Tenant.id)
            )
            tenants = list((await session.scalars(stmt)).all())

        recipients = [
            (tenant, membership.user)
            for tenant in tenants
            for membership in tenant.users
            if wants_digest(membership.user, digest_type)
        ]

        outcome = await for_each(
            recipients,
            lambda unit: self._send_one(unit[1], unit[0], digest_type),
            policy=ErrorPolicy.CONTINUE,
            describe=lambda unit: f"digest for {unit[1].email} ({unit[0].name})",
            logger=self.log,
        )

        result = DigestRunResult(
            digest_type=digest_type,
            emails_sent=sum(1 for sent in outcome.results if sent),
            skipped=sum(1 for sent in outcome.results if not sent),
            errors=len(outcome.errors),
        )
        self.log.info("%s digest completed. Sent: %d, Errors: %d",
                      digest_type.value, result.emails_sent, result.errors)
        return result
