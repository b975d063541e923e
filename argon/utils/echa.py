"""Regulatory substance lookups and hazard classification helpers.

Substances are resolved by CAS number through PubChem's PUG REST API until a
direct ECHA integration exists; CMR status is derived from H-statement codes.
"""
import logging
import re
from urllib.parse import quote

from httpx import AsyncClient, HTTPError
from pydantic import BaseModel

from argon.models import SubstitutionPriority

log = logging.getLogger("argon.echa")

PUBCHEM_URL = "https://pubchem.ncbi.nlm.nih.gov/rest/pug/compound/name/{}/JSON"

# Prefixes; H350i, H360FD, H361d and friends match their base code
CMR_CODES = ("H340", "H341", "H350", "H351", "H360", "H361", "H362")

H_CODE = re.compile(r"H(\d{3})")


class EchaSubstance(BaseModel):
    cas_number: str
    ec_number: str | None = None
    substance_name: str
    is_cmr: bool = False
    is_svhc: bool = False
    reach_status: str | None = None
    hazard_statements: list[str] = []


class SubstanceLookup:
    def __init__(self, http: AsyncClient):
        self.http = http

    async def search_by_cas(self, cas_number: str) -> EchaSubstance | None:
        cas = re.sub(r"\s", "", cas_number)
        url = PUBCHEM_URL.format(quote(cas, safe=""))

        try:
            response = await self.http.get(url)
        except HTTPError as exc:
            log.warning("Substance lookup for CAS %s failed: %s", cas, exc)
            return None

        if response.is_error:
            log.warning("Substance lookup for CAS %s returned %s", cas, response.status_code)
            return None

        try:
            compounds = response.json().get("PC_Compounds") or []
        except ValueError:
            log.warning("Substance lookup for CAS %s returned invalid JSON", cas)
            return None

        if not compounds:
            return None

        name = "Unknown"
        for prop in compounds[0].get("props", []):
            if prop.get("urn", {}).get("label") == "IUPAC Name":
                name = prop.get("value", {}).get("sval", name)
                break

        # PubChem has neither the candidate list nor harmonised classifications
        return EchaSubstance(cas_number=cas, substance_name=name)


def hazard_codes(statements: list[str]) -> list[str]:
    codes = []
    for statement in statements:
        match = H_CODE.search(statement.upper())
        if match:
            codes.append(match.group(1))
    return codes


def calculate_hazard_level(statements: list[str]) -> int:
    """Hazard level from 1 (low) to 5 (very high) based on H-statement codes."""
    level = 1
    for code in map(int, hazard_codes(statements)):
        if 300 <= code < 400:
            if code <= 311 or 330 <= code <= 336 or 340 <= code <= 351 or 360 <= code <= 373:
                level = max(level, 5)
            elif 312 <= code <= 319:
                level = max(level, 4)
            else:
                level = max(level, 3)
        elif 400 <= code < 500:
            level = max(level, 4 if code <= 411 else 3)
        elif 200 <= code < 300:
            if code <= 205:
                level = max(level, 5)
            elif 220 <= code <= 229:
                level = max(level, 4)
            else:
                level = max(level, 3)
    return level


def is_cmr_substance(statements: list[str]) -> bool:
    """True when any statement carries a carcinogenic, mutagenic or reprotoxic code."""
    return any(code in statement.upper() for statement in statements for code in CMR_CODES)


def calculate_substitution_priority(is_cmr: bool, is_svhc: bool,
                                    hazard_level: int | None) -> SubstitutionPriority | None:
    """How urgently a safer alternative should be sought; None when no assessment is needed."""
    if is_cmr or is_svhc:
        return SubstitutionPriority.HIGH
    hazard_level = hazard_level or 0
    if hazard_level >= 4:
        return SubstitutionPriority.HIGH
    if hazard_level == 3:
        return SubstitutionPriority.MEDIUM
    if hazard_level == 2:
        return SubstitutionPriority.LOW
    return None
