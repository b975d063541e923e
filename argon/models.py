import enum
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def new_id() -> str:
    return str(uuid4())


class TenantStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    TRIAL = "TRIAL"
    SUSPENDED = "SUSPENDED"
    CANCELLED = "CANCELLED"


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    HMS = "HMS"
    LEDER = "LEDER"
    VERNEOMBUD = "VERNEOMBUD"
    ANSATT = "ANSATT"
    BHT = "BHT"
    REVISOR = "REVISOR"


class ChemicalStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    PHASED_OUT = "PHASED_OUT"
    ARCHIVED = "ARCHIVED"


class NotificationType(str, enum.Enum):
    CHEMICAL_SDS_REVIEW = "CHEMICAL_SDS_REVIEW"


class SubstitutionPriority(str, enum.Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class IncidentStatus(str, enum.Enum):
    OPEN = "OPEN"
    INVESTIGATING = "INVESTIGATING"
    ACTION_TAKEN = "ACTION_TAKEN"
    CLOSED = "CLOSED"


class MeasureStatus(str, enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"


class ActivityStatus(str, enum.Enum):
    """Lifecycle shared by inspections, meetings and audits."""

    PLANNED = "PLANNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class DocumentStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    APPROVED = "APPROVED"
    ARCHIVED = "ARCHIVED"


class RiskStatus(str, enum.Enum):
    OPEN = "OPEN"
    MITIGATING = "MITIGATING"
    ACCEPTED = "ACCEPTED"
    CLOSED = "CLOSED"


class Tenant(Base):
    __tablename__ = "tenants"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(String, primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True)
    status = Column(Enum(TenantStatus), nullable=False, default=TenantStatus.TRIAL)

    created_at = Column(DateTime, server_default=func.now())

    users = relationship("UserTenant", back_populates="tenant")


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=new_id)
    email = Column(String, unique=True)
    name = Column(String)
    notify_by_email = Column(Boolean, nullable=False, default=True)
    daily_digest = Column(Boolean, nullable=False, default=False)
    weekly_digest = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, server_default=func.now())

    tenants = relationship("UserTenant", back_populates="user")


class UserTenant(Base):
    __tablename__ = "user_tenants"
    __table_args__ = (
        UniqueConstraint("user_id", "tenant_id"),
    )

    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    tenant_id = Column(String, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    role = Column(Enum(Role), nullable=False, default=Role.ANSATT)

    user = relationship("User", back_populates="tenants")
    tenant = relationship("Tenant", back_populates="users")


class Chemical(Base):
    __tablename__ = "chemicals"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(String, primary_key=True, default=new_id)
    tenant_id = Column(String, ForeignKey("tenants.id", ondelete="CASCADE"),
                       nullable=False, index=True)
    product_name = Column(String, nullable=False)
    supplier = Column(String)
    cas_number = Column(String)
    ec_number = Column(String)

    sds_key = Column(String)
    sds_date = Column(DateTime)
    sds_version = Column(String)

    hazard_statements = Column(Text)
    precautionary_statements = Column(Text)
    ai_extracted_data = Column(JSON)
    hazard_level = Column(Integer)
    is_cmr = Column(Boolean, nullable=False, default=False)
    is_svhc = Column(Boolean, nullable=False, default=False)
    reach_status = Column(String)
    substitution_priority = Column(Enum(SubstitutionPriority))

    status = Column(Enum(ChemicalStatus), nullable=False, default=ChemicalStatus.ACTIVE)
    next_review_date = Column(DateTime)
    last_verified_at = Column(DateTime)
    last_echa_sync = Column(DateTime)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String, primary_key=True, default=new_id)
    tenant_id = Column(String, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(Enum(NotificationType), nullable=False)
    title = Column(String, nullable=False)
    message = Column(Text)
    link = Column(String)
    is_read = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, server_default=func.now())


class Incident(Base):
    __tablename__ = "incidents"

    id = Column(String, primary_key=True, default=new_id)
    tenant_id = Column(String, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    title = Column(String, nullable=False)
    responsible_id = Column(String, ForeignKey("users.id"))
    status = Column(Enum(IncidentStatus), nullable=False, default=IncidentStatus.OPEN)

    created_at = Column(DateTime, server_default=func.now())


class Measure(Base):
    __tablename__ = "measures"

    id = Column(String, primary_key=True, default=new_id)
    tenant_id = Column(String, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    title = Column(String, nullable=False)
    responsible_id = Column(String, ForeignKey("users.id"))
    status = Column(Enum(MeasureStatus), nullable=False, default=MeasureStatus.PENDING)
    due_at = Column(DateTime)


class Training(Base):
    __tablename__ = "trainings"

    id = Column(String, primary_key=True, default=new_id)
    tenant_id = Column(String, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    title = Column(String, nullable=False)
    valid_until = Column(DateTime)


class Inspection(Base):
    __tablename__ = "inspections"

    id = Column(String, primary_key=True, default=new_id)
    tenant_id = Column(String, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    title = Column(String, nullable=False)
    conducted_by = Column(String, ForeignKey("users.id"))
    status = Column(Enum(ActivityStatus), nullable=False, default=ActivityStatus.PLANNED)
    scheduled_date = Column(DateTime)


class Meeting(Base):
    __tablename__ = "meetings"

    id = Column(String, primary_key=True, default=new_id)
    tenant_id = Column(String, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    title = Column(String, nullable=False)
    type = Column(String, nullable=False, default="OTHER")
    status = Column(Enum(ActivityStatus), nullable=False, default=ActivityStatus.PLANNED)
    scheduled_date = Column(DateTime, nullable=False)

    participants = relationship("MeetingParticipant", cascade="all, delete-orphan")


class MeetingParticipant(Base):
    __tablename__ = "meeting_participants"
    __table_args__ = (
        UniqueConstraint("meeting_id", "user_id"),
    )

    id = Column(String, primary_key=True, default=new_id)
    meeting_id = Column(String, ForeignKey("meetings.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)


class Audit(Base):
    __tablename__ = "audits"

    id = Column(String, primary_key=True, default=new_id)
    tenant_id = Column(String, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    title = Column(String, nullable=False)
    lead_auditor_id = Column(String, ForeignKey("users.id"))
    status = Column(Enum(ActivityStatus), nullable=False, default=ActivityStatus.PLANNED)
    scheduled_date = Column(DateTime)


class Document(Base):
    __tablename__ = "documents"

    id = Column(String, primary_key=True, default=new_id)
    tenant_id = Column(String, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    title = Column(String, nullable=False)
    status = Column(Enum(DocumentStatus), nullable=False, default=DocumentStatus.DRAFT)
    next_review_date = Column(DateTime)


class Risk(Base):
    __tablename__ = "risks"

    id = Column(String, primary_key=True, default=new_id)
    tenant_id = Column(String, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    title = Column(String, nullable=False)
    status = Column(Enum(RiskStatus), nullable=False, default=RiskStatus.OPEN)
    next_review_date = Column(DateTime)
