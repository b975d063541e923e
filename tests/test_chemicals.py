import pytest

from argon.services.chemicals import (
    apply_extracted_data,
    apply_substance,
    attach_uploaded_sds,
    get_chemical,
    update_substitution_priority,
    verify_chemical
)
from argon.models import SubstitutionPriority
from argon.utils.echa import EchaSubstance
from argon.utils.sds import ExtractedSds

from .conftest import FakeParser, add_chemical, add_tenant


@pytest.fixture
async def acme(session):
    return await add_tenant(session, "Acme")


@pytest.fixture
async def ethanol(session, acme):
    return await add_chemical(
        session, acme, "Ethanol",
        hazard_statements="H225 Highly flammable liquid and vapour",
        hazard_level=4,
    )


async def test_get_chemical_within_tenant(session, acme, ethanol):
    assert (await get_chemical(session, ethanol.id, acme.id)).id == ethanol.id


async def test_get_chemical_from_other_tenant(session, ethanol):
    other = await add_tenant(session, "Other")

    assert await get_chemical(session, ethanol.id, other.id) is None


async def test_extracted_data_at_threshold_is_ignored(ethanol):
    extracted = ExtractedSds(hazard_statements=["H350 May cause cancer"], confidence=0.7)

    assert not apply_extracted_data(ethanol, extracted, threshold=0.7)

    assert ethanol.hazard_statements == "H225 Highly flammable liquid and vapour"
    assert ethanol.hazard_level == 4
    assert not ethanol.is_cmr
    assert ethanol.ai_extracted_data is None


async def test_extracted_data_above_threshold_is_applied(ethanol):
    extracted = ExtractedSds(
        hazard_statements=["H225 Highly flammable liquid and vapour", "H350 May cause cancer"],
        precautionary_statements=["P201 Obtain special instructions before use"],
        confidence=0.71,
    )

    assert apply_extracted_data(ethanol, extracted, threshold=0.7)

    assert ethanol.hazard_statements == "H225 Highly flammable liquid and vapour, H350 May cause cancer"
    assert ethanol.precautionary_statements == "P201 Obtain special instructions before use"
    assert ethanol.hazard_level == 5
    assert ethanol.is_cmr
    assert ethanol.ai_extracted_data["confidence"] == pytest.approx(0.71)


async def test_confident_parse_without_statements_keeps_stored_ones(ethanol):
    assert apply_extracted_data(ethanol, ExtractedSds(product_name="Ethanol", confidence=0.9))

    assert ethanol.hazard_statements == "H225 Highly flammable liquid and vapour"
    assert ethanol.hazard_level == 4


async def test_known_cmr_flag_is_kept(ethanol):
    ethanol.is_cmr = True

    apply_extracted_data(ethanol, ExtractedSds(hazard_statements="H225 Flammable", confidence=0.9))

    assert ethanol.is_cmr
    assert ethanol.hazard_statements == "H225 Flammable"


async def test_apply_substance(ethanol):
    ethanol.reach_status = "Registered"

    apply_substance(ethanol, EchaSubstance(cas_number="64-17-5", substance_name="ethanol",
                                           is_svhc=True, ec_number="200-578-6"))

    assert ethanol.is_svhc
    assert not ethanol.is_cmr
    assert ethanol.ec_number == "200-578-6"
    assert ethanol.reach_status == "Registered"


async def test_verify_chemical(session, acme, ethanol):
    chemical = await verify_chemical(session, ethanol.id, acme.id)

    assert chemical.last_verified_at is not None


async def test_verify_chemical_from_other_tenant(session, ethanol):
    other = await add_tenant(session, "Other")

    assert await verify_chemical(session, ethanol.id, other.id) is None
    assert ethanol.last_verified_at is None


async def test_attach_uploaded_sds(session, acme, ethanol, storage):
    parser = FakeParser(ExtractedSds(hazard_statements=["H319 Causes serious eye irritation"],
                                     confidence=0.9))

    extracted = await attach_uploaded_sds(session, ethanol, b"%PDF-1.4", storage=storage, parser=parser)

    assert extracted.confidence == pytest.approx(0.9)
    assert ethanol.sds_key.startswith(f"sds/{acme.id}/{ethanol.id}-")
    assert storage.uploads[ethanol.sds_key] == b"%PDF-1.4"
    assert ethanol.hazard_statements == "H319 Causes serious eye irritation"
    assert ethanol.last_verified_at is not None


async def test_attach_unparseable_sds_keeps_hazard_data(session, ethanol, storage):
    await attach_uploaded_sds(session, ethanol, b"%PDF-1.4", storage=storage, parser=FakeParser())

    assert ethanol.sds_key in storage.uploads
    assert ethanol.hazard_statements == "H225 Highly flammable liquid and vapour"


async def test_substance_lookup_never_clears_verified_flags(ethanol):
    ethanol.is_cmr = True
    ethanol.is_svhc = True

    apply_substance(ethanol, EchaSubstance(cas_number="64-17-5", substance_name="ethanol"))

    assert ethanol.is_cmr
    assert ethanol.is_svhc


@pytest.mark.parametrize("is_cmr,hazard_level,expected", [
    (True, 1, SubstitutionPriority.HIGH),
    (False, 4, SubstitutionPriority.HIGH),
    (False, 3, SubstitutionPriority.MEDIUM),
    (False, None, None),
])
async def test_update_substitution_priority(ethanol, is_cmr, hazard_level, expected):
    ethanol.is_cmr = is_cmr
    ethanol.hazard_level = hazard_level

    update_substitution_priority(ethanol)

    assert ethanol.substitution_priority == expected


async def test_attach_uploaded_sds_sets_substitution_priority(session, ethanol, storage):
    parser = FakeParser(ExtractedSds(hazard_statements=["H350 May cause cancer"], confidence=0.9))

    await attach_uploaded_sds(session, ethanol, b"%PDF-1.4", storage=storage, parser=parser)

    assert ethanol.substitution_priority == SubstitutionPriority.HIGH
