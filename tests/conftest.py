import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("STORAGE_TYPE", "local")
os.environ.setdefault("JOBS_TOKEN", "")

from datetime import datetime

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from argon.models import (
    Base,
    Chemical,
    ChemicalStatus,
    Role,
    Tenant,
    TenantStatus,
    User,
    UserTenant
)
from argon.utils.echa import EchaSubstance
from argon.utils.sds import ExtractedSds
from argon.utils.suppliers import SupplierProduct, SupplierSdsInfo, UpdateCheck

NOW = datetime(2026, 3, 2, 9, 30)


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'argon.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


async def add_tenant(session, name, status=TenantStatus.ACTIVE):
    tenant = Tenant(name=name, slug=name.lower().replace(" ", "-"), status=status)
    session.add(tenant)
    await session.flush()
    return tenant


async def add_member(session, tenant, email, role=Role.ANSATT, **user_fields):
    user = User(email=email, name=email.split("@")[0], **user_fields)
    session.add(user)
    await session.flush()
    session.add(UserTenant(user_id=user.id, tenant_id=tenant.id, role=role))
    await session.flush()
    return user


async def add_chemical(session, tenant, product_name, supplier="VWR", cas_number="64-17-5", **fields):
    fields.setdefault("status", ChemicalStatus.ACTIVE)
    chemical = Chemical(
        tenant_id=tenant.id,
        product_name=product_name,
        supplier=supplier,
        cas_number=cas_number,
        **fields,
    )
    session.add(chemical)
    await session.flush()
    return chemical


def sds_info(version="2.0", revised=datetime(2026, 1, 15)):
    return SupplierSdsInfo(
        product=SupplierProduct(catalog_number="64-17-5", product_name="Ethanol"),
        sds_available=True,
        sds_version=version,
        sds_last_updated=revised,
        download_url="https://supplier.test/sds.pdf",
    )


class FakeSuppliers:
    """Supplier manager answering from a table keyed by CAS number."""

    def __init__(self, updates=None, failing=(), downloads=None):
        self.updates = updates or {}
        self.failing = set(failing)
        self.downloads = downloads or {}
        self.checked = []
        self.downloaded = []

    async def check_for_updates(self, supplier, catalog_number, current_sds_date=None):
        self.checked.append(catalog_number)
        if catalog_number in self.failing:
            raise RuntimeError(f"supplier exploded for {catalog_number}")
        info = self.updates.get(catalog_number)
        if info is None:
            return UpdateCheck(has_update=False)
        return UpdateCheck(has_update=True, sds_info=info)

    async def download_updated_sds(self, supplier, catalog_number):
        self.downloaded.append(catalog_number)
        return self.downloads.get(catalog_number, b"%PDF-1.4 new sds")


class FakeStorage:
    def __init__(self):
        self.uploads = {}

    async def upload(self, key, content, content_type="application/octet-stream"):
        self.uploads[key] = content
        return key

    async def get_url(self, key, expires_in=3600):
        return f"https://storage.test/{key}"


class FakeParser:
    def __init__(self, extracted=None):
        self.extracted = extracted or ExtractedSds(confidence=0.0)
        self.calls = 0

    async def parse(self, content):
        self.calls += 1
        return self.extracted


class FakeSubstances:
    def __init__(self, substance=None):
        self.substance = substance
        self.looked_up = []

    async def search_by_cas(self, cas_number):
        self.looked_up.append(cas_number)
        return self.substance


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def substances():
    return FakeSubstances(EchaSubstance(cas_number="64-17-5", substance_name="ethanol",
                                       reach_status="Registered", ec_number="200-578-6"))
