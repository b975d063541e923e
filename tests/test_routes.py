import httpx
import pytest

from argon import app
from argon.models import Role
from argon.routes import dependencies
from argon.services.chemical_alerts import ChemicalAlerts
from argon.services.digest import DigestMailer
from argon.services.sds_update import SdsUpdater
from argon.utils.sds import ExtractedSds
from argon.utils.templater import Templater

from .conftest import (
    NOW,
    FakeParser,
    FakeSuppliers,
    add_chemical,
    add_member,
    add_tenant,
    sds_info
)


class FakeSender:
    def __init__(self):
        self.sent = []

    async def send_email(self, to, subject, html):
        self.sent.append(to)
        return "msg-1"


@pytest.fixture
async def seeded(session_factory):
    async with session_factory() as session:
        acme = await add_tenant(session, "Acme")
        await add_member(session, acme, "admin@acme.test", Role.ADMIN)
        ethanol = await add_chemical(session, acme, "Ethanol", sds_version="1.0")
        other = await add_tenant(session, "Other")
        await session.commit()
    return acme, ethanol, other


@pytest.fixture
async def client(session_factory, storage, seeded):
    parser = FakeParser(ExtractedSds(hazard_statements=["H225 Highly flammable liquid and vapour"],
                                     confidence=0.9))
    templater = Templater()

    app.state.async_session = session_factory
    app.state.http = None
    app.state.storage = storage
    app.state.parser = parser
    app.state.templater = templater
    app.state.sds_updater = SdsUpdater(
        session_factory,
        FakeSuppliers(updates={"64-17-5": sds_info("2.0")}),
        storage,
        parser,
        clock=lambda: NOW,
    )
    app.state.digest_mailer = DigestMailer(session_factory, FakeSender(), templater, clock=lambda: NOW)
    app.state.chemical_alerts = ChemicalAlerts(session_factory, FakeSender(), templater, clock=lambda: NOW)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test/api/v1") as client:
        yield client


def headers(tenant):
    return {"X-Tenant-Id": tenant.id}


async def test_healthcheck(client):
    response = await client.get("/healthcheck")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


async def test_get_chemical(client, seeded):
    acme, ethanol, _ = seeded

    response = await client.get(f"/chemicals/{ethanol.id}", headers=headers(acme))

    assert response.status_code == 200
    body = response.json()
    assert body["product_name"] == "Ethanol"
    assert body["sds_version"] == "1.0"
    assert body["status"] == "ACTIVE"


async def test_chemical_of_other_tenant_is_hidden(client, seeded):
    _, ethanol, other = seeded

    response = await client.get(f"/chemicals/{ethanol.id}", headers=headers(other))

    assert response.status_code == 404
    assert response.json()["detail"] == "Chemical not found"


async def test_tenant_header_is_required(client, seeded):
    _, ethanol, _ = seeded

    response = await client.get(f"/chemicals/{ethanol.id}")

    assert response.status_code == 422


async def test_verify_chemical(client, seeded):
    acme, ethanol, other = seeded

    response = await client.post(f"/chemicals/{ethanol.id}/verify", headers=headers(acme))
    assert response.status_code == 200
    assert response.json()["last_verified_at"] is not None

    response = await client.post(f"/chemicals/{ethanol.id}/verify", headers=headers(other))
    assert response.status_code == 404


async def test_upload_and_fetch_sds(client, seeded, storage):
    acme, ethanol, _ = seeded

    response = await client.get(f"/chemicals/{ethanol.id}/sds", headers=headers(acme))
    assert response.status_code == 404

    response = await client.post(
        f"/chemicals/{ethanol.id}/sds",
        headers=headers(acme),
        files={"file": ("ethanol.pdf", b"%PDF-1.4 uploaded", "application/pdf")},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["confidence"] == pytest.approx(0.9)
    assert storage.uploads[body["sds_key"]] == b"%PDF-1.4 uploaded"

    response = await client.get(f"/chemicals/{ethanol.id}/sds", headers=headers(acme))
    assert response.status_code == 200
    assert response.json() == {
        "sds_key": body["sds_key"],
        "url": f"https://storage.test/{body['sds_key']}",
    }

    response = await client.get(f"/chemicals/{ethanol.id}", headers=headers(acme))
    assert response.json()["hazard_statements"] == "H225 Highly flammable liquid and vapour"


async def test_upload_empty_sds(client, seeded):
    acme, ethanol, _ = seeded

    response = await client.post(
        f"/chemicals/{ethanol.id}/sds",
        headers=headers(acme),
        files={"file": ("empty.pdf", b"", "application/pdf")},
    )

    assert response.status_code == 400


async def test_check_sds(client, seeded):
    acme, ethanol, _ = seeded

    response = await client.post(f"/chemicals/{ethanol.id}/sds/check", headers=headers(acme))

    assert response.status_code == 200
    assert response.json()["has_update"] is True
    assert response.json()["available_version"] == "2.0"


async def test_refresh_sds(client, seeded):
    acme, ethanol, other = seeded

    response = await client.post(f"/chemicals/{ethanol.id}/sds/refresh", headers=headers(acme))
    assert response.status_code == 200
    assert response.json()["was_updated"] is True
    assert response.json()["new_version"] == "2.0"

    response = await client.post(f"/chemicals/{ethanol.id}/sds/refresh", headers=headers(other))
    assert response.status_code == 404


async def test_weekly_sds_job(client, seeded):
    response = await client.post("/jobs/sds-weekly")

    assert response.status_code == 200
    body = response.json()
    assert body["total_checked"] == 1
    assert body["total_updated"] == 1


async def test_digest_job(client, seeded):
    response = await client.post("/jobs/digest/WEEKLY")

    assert response.status_code == 200
    assert response.json()["digest_type"] == "WEEKLY"


async def test_outdated_sds_job(client, seeded):
    response = await client.post("/jobs/chemicals/outdated-sds")

    assert response.status_code == 200
    assert response.json()["tenants_processed"] == 2
    assert response.json()["tenants_flagged"] == 0


async def test_substitution_job(session_factory, client, seeded):
    acme, _, _ = seeded
    async with session_factory() as session:
        await add_chemical(session, acme, "Benzene", cas_number="71-43-2", is_cmr=True)
        await session.commit()

    response = await client.post("/jobs/chemicals/substitution")

    assert response.status_code == 200
    body = response.json()
    assert body["tenants_flagged"] == 1
    assert body["notifications_created"] == 1
    assert body["emails_sent"] == 1


async def test_unknown_digest_type(client):
    response = await client.post("/jobs/digest/MONTHLY")

    assert response.status_code == 422


async def test_jobs_require_token_when_configured(client, monkeypatch):
    monkeypatch.setattr(dependencies, "JOBS_TOKEN", "s3cret")

    response = await client.post("/jobs/digest/DAILY")
    assert response.status_code == 401

    response = await client.post("/jobs/digest/DAILY", headers={"Authorization": "Bearer s3cret"})
    assert response.status_code == 200
