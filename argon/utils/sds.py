import asyncio
import json
import logging
import re
from io import BytesIO

from httpx import AsyncClient, HTTPError
from pydantic import BaseModel, ConfigDict, ValidationError
from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError

log = logging.getLogger("argon.sds")

OPENAI_URL = "https://api.openai.com/v1/chat/completions"

# Text beyond this is not sent for extraction
MAX_PROMPT_CHARS = 8000

# Below this the AI answer is discarded in favour of pattern matching
MIN_AI_CONFIDENCE = 0.5
PATTERN_CONFIDENCE = 0.6

CAS_PATTERN = re.compile(r"\b\d{2,7}-\d{2}-\d\b")
H_STATEMENT_PATTERN = re.compile(r"H\d{3}[A-Za-z]?[:\s]+[^\n]+")
P_STATEMENT_PATTERN = re.compile(r"P\d{3}[:\s]+[^\n]+")

ISOCYANATE_KEYWORDS = (
    "isocyanat",
    "diisocyanat",
    "mdi",
    "tdi",
    "hdi",
    "ipdi",
    "polyisocyanat",
)

ISOCYANATE_CAS = {
    "101-68-8": "MDI",
    "584-84-9": "TDI",
    "26471-62-5": "TDI mixture",
    "822-06-0": "HDI",
    "4098-71-9": "IPDI",
    "5873-54-1": "NDI",
}

PPE_BY_CODE = {
    "eye": {"H314", "H318", "H319", "H335"},
    "hand": {"H312", "H314", "H315", "H317", "H334"},
    "respiratory": {"H330", "H331", "H332", "H335", "H336"},
    "skin": {"H310", "H311", "H312", "H314", "H315"},
}

EXTRACTION_PROMPT = """You are an expert on safety data sheets (SDS). Extract the
information below and answer with a single JSON object and nothing else.

Keys:
- product_name: string
- supplier: string
- cas_number: CAS number of the main substance, e.g. "64-17-5"
- cas_numbers: every CAS number in section 3, as a list
- hazard_statements: list of H-statements, e.g. ["H225 Highly flammable liquid and vapour"]
- precautionary_statements: list of P-statements
- signal_word: "DANGER", "WARNING" or null
- pictograms: list of GHS pictogram codes, e.g. ["GHS02", "GHS07"]
- contains_isocyanates: true if the product contains isocyanates (MDI, TDI, HDI, IPDI, ...)
- isocyanate_details: short explanation or null
- confidence: number between 0 and 1, how certain you are of the extraction
"""


class ExtractedSds(BaseModel):
    """Structured data pulled out of a safety data sheet."""

    model_config = ConfigDict(extra="ignore")

    product_name: str | None = None
    supplier: str | None = None
    cas_number: str | None = None
    cas_numbers: list[str] = []
    hazard_statements: list[str] | str | None = None
    precautionary_statements: list[str] | str | None = None
    signal_word: str | None = None
    pictograms: list[str] = []
    contains_isocyanates: bool = False
    isocyanate_details: str | None = None
    ppe: dict[str, bool] = {}
    confidence: float = 0.0

    def hazard_statement_list(self) -> list[str]:
        return statement_list(self.hazard_statements)


def statement_list(statements: list[str] | str | None) -> list[str]:
    if not statements:
        return []
    if isinstance(statements, str):
        return [part.strip() for part in statements.split(",") if part.strip()]
    return list(statements)


def extract_text(content: bytes) -> str:
    """Plain text of every page of a PDF."""
    reader = PdfReader(BytesIO(content))
    return "\n".join(page.extract_text() or "" for page in reader.pages)


def extract_with_patterns(text: str) -> ExtractedSds:
    """Regex extraction used when the AI extraction is unavailable or unsure."""
    cas_numbers = list(dict.fromkeys(CAS_PATTERN.findall(text)))
    hazard_statements = [s.strip() for s in H_STATEMENT_PATTERN.findall(text)]
    precautionary_statements = [s.strip() for s in P_STATEMENT_PATTERN.findall(text)]

    signal_word = None
    if "DANGER" in text or "FARE" in text:
        signal_word = "DANGER"
    elif "WARNING" in text or "ADVARSEL" in text:
        signal_word = "WARNING"

    return ExtractedSds(
        cas_number=cas_numbers[0] if cas_numbers else None,
        cas_numbers=cas_numbers,
        hazard_statements=hazard_statements or None,
        precautionary_statements=precautionary_statements or None,
        signal_word=signal_word,
        confidence=PATTERN_CONFIDENCE,
    )


def detect_isocyanates(product_name: str, cas_numbers: list[str], text: str) -> tuple[bool, str | None]:
    """Products with isocyanates require certified training (EU 2020/1149)."""
    found_cas = [cas for cas in cas_numbers if cas in ISOCYANATE_CAS]
    name = product_name.lower()
    lowered = text.lower()
    in_name = any(keyword in name for keyword in ISOCYANATE_KEYWORDS)
    in_text = any(re.search(rf"\b{keyword}", lowered) for keyword in ISOCYANATE_KEYWORDS)

    if not (found_cas or in_name or in_text):
        return False, None

    details = "The product contains isocyanates. "
    if found_cas:
        details += f"CAS numbers found: {', '.join(found_cas)}. "
    details += "Mandatory training under EU regulation 2020/1149."
    return True, details


def suggest_ppe(hazard_statements: list[str]) -> dict[str, bool]:
    codes = set()
    for statement in hazard_statements:
        match = re.search(r"H\d{3}", statement)
        if match:
            codes.add(match.group())
    return {kind: bool(codes & triggers) for kind, triggers in PPE_BY_CODE.items()}


def _parse_ai_content(content: str) -> ExtractedSds | None:
    try:
        data, default_confidence = json.loads(content), 0.8
    except json.JSONDecodeError:
        # The model sometimes wraps the JSON in prose
        match = re.search(r"\{.*\}", content, re.DOTALL)
        if match is None:
            return None
        try:
            data, default_confidence = json.loads(match.group()), 0.6
        except json.JSONDecodeError:
            return None

    if not isinstance(data, dict):
        return None
    if data.get("confidence") is None:
        data["confidence"] = default_confidence

    try:
        return ExtractedSds.model_validate(data)
    except ValidationError as exc:
        log.warning("AI extraction returned unexpected fields: %s", exc)
        return None


class SdsParser:
    """Turns an SDS PDF into :class:`ExtractedSds` with a confidence score.

    Text comes from PyPDF2. When an OpenAI key is configured the text is
    sent to a chat model for structured extraction; a failed or unsure
    answer falls back to pattern matching.
    """

    def __init__(self, http: AsyncClient, openai_api_key: str | None = None,
                 model: str = "gpt-4o-mini"):
        self.http = http
        self.openai_api_key = openai_api_key
        self.model = model

    async def extract_with_ai(self, text: str) -> ExtractedSds | None:
        if not self.openai_api_key:
            return None

        try:
            response = await self.http.post(
                OPENAI_URL,
                headers={"Authorization": f"Bearer {self.openai_api_key}"},
                json={
                    "model": self.model,
                    "messages": [
                        {"role": "system", "content": EXTRACTION_PROMPT},
                        {"role": "user", "content": text[:MAX_PROMPT_CHARS]},
                    ],
                    "temperature": 0.1,
                    "max_tokens": 2000,
                    "response_format": {"type": "json_object"},
                },
                timeout=60,
            )
            response.raise_for_status()
            content = response.json()["choices"][0]["message"]["content"]
        except (HTTPError, ValueError, KeyError, IndexError) as exc:
            log.warning("AI extraction failed: %s", exc)
            return None

        if not content:
            return None
        return _parse_ai_content(content)

    async def parse(self, content: bytes) -> ExtractedSds:
        loop = asyncio.get_running_loop()
        try:
            text = await loop.run_in_executor(None, extract_text, content)
        except PdfReadError as exc:
            log.warning("Could not read SDS PDF: %s", exc)
            return ExtractedSds(confidence=0.0)

        extracted = await self.extract_with_ai(text)
        if extracted is None or extracted.confidence < MIN_AI_CONFIDENCE:
            extracted = extract_with_patterns(text)

        contains, details = detect_isocyanates(
            extracted.product_name or "", extracted.cas_numbers, text,
        )
        extracted.contains_isocyanates = extracted.contains_isocyanates or contains
        extracted.isocyanate_details = extracted.isocyanate_details or details
        extracted.ppe = suggest_ppe(extracted.hazard_statement_list())
        return extracted
