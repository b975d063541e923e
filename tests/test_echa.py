import httpx
import pytest

from argon.models import SubstitutionPriority
from argon.utils.echa import (
    SubstanceLookup,
    calculate_hazard_level,
    calculate_substitution_priority,
    hazard_codes,
    is_cmr_substance
)

ETHANOL = {
    "PC_Compounds": [{
        "props": [
            {"urn": {"label": "Molecular Formula"}, "value": {"sval": "C2H6O"}},
            {"urn": {"label": "IUPAC Name", "name": "Preferred"}, "value": {"sval": "ethanol"}},
        ],
    }],
}


def lookup_for(handler):
    return SubstanceLookup(httpx.AsyncClient(transport=httpx.MockTransport(handler)))


@pytest.mark.parametrize("statements,level", [
    ([], 1),
    (["EUH066 Repeated exposure may cause skin dryness"], 1),
    (["H290 May be corrosive to metals"], 3),
    (["H412 Harmful to aquatic life"], 3),
    (["H400 Very toxic to aquatic life"], 4),
    (["H225 Highly flammable liquid and vapour"], 4),
    (["H315 Causes skin irritation", "H412 Harmful to aquatic life"], 4),
    (["H200 Unstable explosive"], 5),
    (["H350 May cause cancer"], 5),
    (["H336 May cause drowsiness"], 5),
    (["H225 Highly flammable", "H370 Causes damage to organs"], 5),
])
def test_hazard_level(statements, level):
    assert calculate_hazard_level(statements) == level


def test_hazard_codes():
    assert hazard_codes(["h225 flammable", "no code", "H350i May cause cancer"]) == ["225", "350"]


@pytest.mark.parametrize("statements,expected", [
    (["H350i May cause cancer by inhalation"], True),
    (["H225", "H361d Suspected of damaging the unborn child"], True),
    (["H340"], True),
    (["H225 Highly flammable", "H319 Eye irritation"], False),
    ([], False),
])
def test_is_cmr_substance(statements, expected):
    assert is_cmr_substance(statements) is expected


async def test_search_by_cas():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json=ETHANOL)

    substance = await lookup_for(handler).search_by_cas(" 64-17-5 ")

    assert substance.cas_number == "64-17-5"
    assert substance.substance_name == "ethanol"
    assert not substance.is_cmr
    assert requests[0].url.path == "/rest/pug/compound/name/64-17-5/JSON"


async def test_search_by_cas_not_found():
    lookup = lookup_for(lambda request: httpx.Response(404, json={"Fault": {"Code": "PUGREST.NotFound"}}))

    assert await lookup.search_by_cas("000-00-0") is None


async def test_search_by_cas_without_compounds():
    lookup = lookup_for(lambda request: httpx.Response(200, json={"PC_Compounds": []}))

    assert await lookup.search_by_cas("64-17-5") is None


async def test_search_by_cas_without_name():
    lookup = lookup_for(lambda request: httpx.Response(200, json={"PC_Compounds": [{"props": []}]}))

    substance = await lookup.search_by_cas("64-17-5")

    assert substance.substance_name == "Unknown"


@pytest.mark.parametrize("is_cmr,is_svhc,hazard_level,priority", [
    (True, False, 1, SubstitutionPriority.HIGH),
    (False, True, None, SubstitutionPriority.HIGH),
    (False, False, 5, SubstitutionPriority.HIGH),
    (False, False, 4, SubstitutionPriority.HIGH),
    (False, False, 3, SubstitutionPriority.MEDIUM),
    (False, False, 2, SubstitutionPriority.LOW),
    (False, False, 1, None),
    (False, False, None, None),
])
def test_substitution_priority(is_cmr, is_svhc, hazard_level, priority):
    assert calculate_substitution_priority(is_cmr, is_svhc, hazard_level) == priority
