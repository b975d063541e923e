import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from argon.constants import SDS_CONFIDENCE_THRESHOLD
from argon.models import Chemical
from argon.utils.dates import utcnow
from argon.utils.echa import (
    EchaSubstance,
    calculate_hazard_level,
    calculate_substitution_priority,
    is_cmr_substance
)
from argon.utils.sds import ExtractedSds, SdsParser
from argon.utils.storage import Storage, sds_storage_key

log = logging.getLogger("argon.chemicals")


async def get_chemical(session: AsyncSession, chemical_id: str, tenant_id: str) -> Chemical | None:
    """Looks a chemical up within one tenant; other tenants' rows are never returned."""
    stmt = select(Chemical).where(Chemical.id == chemical_id, Chemical.tenant_id == tenant_id)
    return (await session.execute(stmt)).scalar_one_or_none()


def _statement_text(statements: list[str] | str) -> str:
    if isinstance(statements, str):
        return statements
    return ", ".join(statements)


def apply_extracted_data(
    chemical: Chemical,
    extracted: ExtractedSds,
    threshold: float = SDS_CONFIDENCE_THRESHOLD,
) -> bool:
    """Copies parsed hazard data onto the chemical when the parser was confident.

    Nothing is touched at or below ``threshold`` so a poor parse never
    replaces verified data. Returns whether the fields were applied.
    """
    if extracted.confidence <= threshold:
        log.info("Keeping stored hazard data for %s; parse confidence %.2f",
                 chemical.id, extracted.confidence)
        return False

    if extracted.hazard_statements:
        chemical.hazard_statements = _statement_text(extracted.hazard_statements)
    if extracted.precautionary_statements:
        chemical.precautionary_statements = _statement_text(extracted.precautionary_statements)
    chemical.ai_extracted_data = extracted.model_dump(mode="json")

    statements = extracted.hazard_statement_list()
    if statements:
        chemical.hazard_level = calculate_hazard_level(statements)
        chemical.is_cmr = bool(chemical.is_cmr) or is_cmr_substance(statements)
    return True


def apply_substance(chemical: Chemical, substance: EchaSubstance) -> None:
    """Merges a regulatory lookup into the chemical.

    CMR and SVHC flags are only ever raised here; a source that cannot
    classify reports them as false, which must not clear a verified flag.
    """
    chemical.is_cmr = bool(chemical.is_cmr) or substance.is_cmr
    chemical.is_svhc = bool(chemical.is_svhc) or substance.is_svhc
    if substance.reach_status is not None:
        chemical.reach_status = substance.reach_status
    if substance.ec_number is not None:
        chemical.ec_number = substance.ec_number


def update_substitution_priority(chemical: Chemical) -> None:
    chemical.substitution_priority = calculate_substitution_priority(
        bool(chemical.is_cmr), bool(chemical.is_svhc), chemical.hazard_level,
    )


async def verify_chemical(session: AsyncSession, chemical_id: str, tenant_id: str) -> Chemical | None:
    """Marks the stored SDS data as checked by a person."""
    chemical = await get_chemical(session, chemical_id, tenant_id)
    if chemical is None:
        return None
    chemical.last_verified_at = utcnow()
    await session.flush()
    return chemical


async def attach_uploaded_sds(
    session: AsyncSession,
    chemical: Chemical,
    content: bytes,
    *,
    storage: Storage,
    parser: SdsParser,
) -> ExtractedSds:
    """Stores a manually uploaded SDS for ``chemical`` and applies what can be parsed from it."""
    key = sds_storage_key(chemical.tenant_id, chemical.id)
    await storage.upload(key, content, content_type="application/pdf")

    extracted = await parser.parse(content)

    chemical.sds_key = key
    chemical.last_verified_at = utcnow()
    apply_extracted_data(chemical, extracted)
    update_substitution_priority(chemical)
    await session.flush()

    log.info("Attached uploaded SDS %s to chemical %s", key, chemical.id)
    return extracted
