"""
Rescue parser for oracle output.

Small models rarely return clean JSON. Parsing is a chain of steps, each
returning ``None`` (nothing usable) or a list of findings; the first
non-empty result wins:

1. Strict JSON parse of the whole response
2. JSON inside fenced code blocks
3. Balanced-bracket scan collecting every well-formed {...} / [...]
4. Line-oriented ``KEY: VALUE`` fallback

Accepted payload shapes: a list of items, a single item object, a wrapper
object holding a list, or a {category: value | [values]} mapping.
"""

import json
import re
from typing import Any, Callable, Dict, List, Optional
import logging

from ..allowlist import MAX_VALUE_WORDS, filter_noise
from ..types import Category, Finding

logger = logging.getLogger(__name__)


VALUE_KEYS = ("value", "text", "valore", "entity", "span")
CATEGORY_KEYS = ("category", "type", "label", "categoria", "tipo", "entity_type")


# =============================================================================
# CATEGORY NORMALIZATION
# =============================================================================

# Labels of the Italian classification schema some prompts/models use
SCHEMA_LABELS = {
    "NOME_PERSONA": Category.FULL_NAME,
    "DATA_NASCITA": Category.DATE_OF_BIRTH,
    "LUOGO_NASCITA": Category.PLACE_OF_BIRTH,
    "SESSO": Category.GENDER,
    "NAZIONALITA": Category.NATIONALITY,
    "C_FISCALE_PERSONA": Category.FISCAL_CODE,
    "NUMERO_DOCUMENTO": Category.ID_DOCUMENT,
    "INDIRIZZO_RESIDENZA": Category.ADDRESS,
    "DATI_BIOMETRICI": Category.BIOMETRIC_DATA,
    "DATI_GENETICI": Category.GENETIC_DATA,
    "DATI_SALUTE": Category.HEALTH_DATA,
    "OPINIONI_POLITICHE": Category.POLITICAL_OPINION,
    "CONVINZIONI_RELIGIOSE": Category.RELIGIOUS_BELIEF,
    "APPARTENENZA_SINDACALE": Category.TRADE_UNION,
    "ORIENTAMENTO_SESSUALE": Category.SEXUAL_ORIENTATION,
    "DATI_COMPORTAMENTALI": Category.OTHER,
    "DATI_FINANZIARI": Category.FINANCIAL_DATA,
    "RUOLO_PROFESSIONALE": Category.PROFESSIONAL_ROLE,
    "N_P_IVA": Category.VAT_NUMBER,
}

# Ordered: the first rule with a matching keyword wins
KEYWORD_RULES = [
    (("EMAIL", "E_MAIL", "MAIL", "PEC"), Category.EMAIL),
    (("PHONE", "TELEFONO", "TEL", "CELL", "CELLULARE", "MOBILE", "FAX"), Category.PHONE_NUMBER),
    (("IBAN",), Category.IBAN),
    (("CREDIT_CARD", "CARD", "CARTA_DI_CREDITO"), Category.CREDIT_CARD),
    (("FISCAL", "FISCALE", "CF", "TAX_CODE", "SSN"), Category.FISCAL_CODE),
    (("VAT", "IVA", "PIVA", "P_IVA"), Category.VAT_NUMBER),
    (("EIN",), Category.US_EIN),
    (("IP",), Category.IP_ADDRESS),
    (("URL", "WEBSITE", "LINK", "SITO"), Category.URL),
    (("BIRTHPLACE", "PLACE_OF_BIRTH", "LUOGO_NASCITA", "LUOGO_DI_NASCITA"), Category.PLACE_OF_BIRTH),
    (("DOB", "DATE_OF_BIRTH", "BIRTH_DATE", "BIRTHDATE", "DATA_NASCITA", "DATA_DI_NASCITA"),
     Category.DATE_OF_BIRTH),
    (("DATE", "DATA", "GIORNO"), Category.DATE),
    (("ORGANIZATION", "ORGANISATION", "ORG", "COMPANY", "SOCIETA", "AZIENDA", "ENTE", "DITTA"),
     Category.ORGANIZATION),
    (("ADDRESS", "INDIRIZZO", "RESIDENZA", "STREET", "LOCATION", "CITY", "CITTA", "LUOGO"),
     Category.ADDRESS),
    (("DOCUMENT", "DOCUMENTO", "PASSPORT", "PASSAPORTO", "PATENTE", "ID_CARD"), Category.ID_DOCUMENT),
    (("NAME", "NOME", "COGNOME", "SURNAME", "PERSON", "PERSONA"), Category.FULL_NAME),
    (("HEALTH", "SALUTE", "MEDICAL", "DIAGNOSIS", "DIAGNOSI"), Category.HEALTH_DATA),
    (("GENDER", "SEX", "SESSO"), Category.GENDER),
    (("NATIONALITY", "CITIZENSHIP", "NAZIONALITA"), Category.NATIONALITY),
    (("ROLE", "JOB", "TITLE", "RUOLO", "PROFESSIONE"), Category.PROFESSIONAL_ROLE),
    (("FINANCIAL", "SALARY", "INCOME", "REDDITO", "STIPENDIO"), Category.FINANCIAL_DATA),
]

_NON_ALNUM = re.compile(r'[^A-Z0-9]+')


def _normalize_label(label: str) -> str:
    # Accented letters are folded so "SOCIETÀ" reads as "SOCIETA"
    folded = label.upper()
    for src, dst in (("À", "A"), ("È", "E"), ("É", "E"), ("Ì", "I"), ("Ò", "O"), ("Ù", "U")):
        folded = folded.replace(src, dst)
    return _NON_ALNUM.sub("_", folded).strip("_")


def normalize_category(
    label: Any,
    value: str = "",
    default: Optional[Category] = Category.OTHER,
) -> Optional[Category]:
    """
    Map a free-form oracle label onto a Category.

    Args:
        label: Raw label ("PERSON", "[NOME_PERSONA]", "Codice Fiscale", ...)
        value: The labelled value, used to split generic contact labels
        default: Returned when nothing matches

    Returns:
        Matching Category, or ``default``
    """
    if not isinstance(label, str) or not label.strip():
        return default

    norm = _normalize_label(label)
    if not norm:
        return default

    if norm in Category.__members__:
        return Category[norm]
    if norm in SCHEMA_LABELS:
        return SCHEMA_LABELS[norm]

    # Contact labels carry either an e-mail or a phone number
    if norm.startswith("CONTATT") or norm.startswith("CONTACT"):
        return Category.EMAIL if "@" in (value or "") else Category.PHONE_NUMBER

    parts = set(norm.split("_"))
    for keywords, category in KEYWORD_RULES:
        for keyword in keywords:
            if keyword == norm or keyword in parts or ("_" in keyword and keyword in norm):
                return category

    return default


# =============================================================================
# PAYLOAD SHAPES
# =============================================================================

def _first_str(item: dict, keys) -> Optional[str]:
    for key in keys:
        for candidate in (key, key.capitalize(), key.upper()):
            if candidate in item:
                raw = item[candidate]
                if isinstance(raw, (int, float)) and not isinstance(raw, bool):
                    raw = str(raw)
                if isinstance(raw, str):
                    return raw
    return None


def _finding_from_item(item: dict) -> Optional[Finding]:
    value = _first_str(item, VALUE_KEYS)
    if value is None or not value.strip():
        return None
    label = _first_str(item, CATEGORY_KEYS) or ""
    category = normalize_category(label, value)
    return Finding(
        value=value.strip(),
        category=category,
        label=_normalize_label(label) or category.value,
    )


def findings_from_payload(payload: Any) -> Optional[List[Finding]]:
    """
    Convert a decoded JSON payload into findings.

    Returns None when the payload has no recognizable shape.
    """
    if isinstance(payload, list):
        findings = []
        for element in payload:
            if isinstance(element, dict):
                finding = _finding_from_item(element)
                if finding is not None:
                    findings.append(finding)
            elif isinstance(element, list):
                findings.extend(findings_from_payload(element) or [])
        return findings

    if not isinstance(payload, dict):
        return None

    # Single item
    if _first_str(payload, VALUE_KEYS) is not None:
        finding = _finding_from_item(payload)
        return [finding] if finding is not None else []

    # Wrapper: {"entities": [...]}, {"findings": [...]}
    for inner in payload.values():
        if isinstance(inner, list) and any(isinstance(e, dict) for e in inner):
            return findings_from_payload(inner)

    # Category map: {"EMAIL": "a@b.it", "FULL_NAME": ["Mario Rossi"]}
    findings = []
    for key, inner in payload.items():
        values = inner if isinstance(inner, list) else [inner]
        for value in values:
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                value = str(value)
            if not isinstance(value, str) or not value.strip():
                continue
            category = normalize_category(key, value, default=None)
            if category is None:
                continue
            findings.append(Finding(value=value.strip(), category=category, label=_normalize_label(key)))
    return findings


# =============================================================================
# RESCUE CHAIN
# =============================================================================

_FENCE = re.compile(r'```[ \t]*(?:json|JSON)?[ \t]*\n?(.*?)```', re.DOTALL)
_BULLET = re.compile(r'^\s*(?:[-*•>#]+|\d+[.)])\s*')
_KEY_VALUE = re.compile(r'^([^:\n]{1,40}?)\s*:\s*(.+)$')
_PAIRS = {"[": "]", "{": "}"}


def _decode(snippet: str) -> Any:
    try:
        return json.loads(snippet)
    except ValueError:
        return None


def parse_strict(text: str) -> Optional[List[Finding]]:
    """Whole response is JSON."""
    payload = _decode(text.strip())
    if payload is None:
        return None
    return findings_from_payload(payload)


def parse_fenced(text: str) -> Optional[List[Finding]]:
    """JSON inside ``` fenced blocks."""
    findings = []
    found = False
    for match in _FENCE.finditer(text):
        payload = _decode(match.group(1).strip())
        if payload is None:
            continue
        items = findings_from_payload(payload)
        if items is not None:
            found = True
            findings.extend(items)
    return findings if found else None


def _matching_close(text: str, start: int) -> Optional[int]:
    """Index of the bracket closing the one at ``start``, string/escape aware."""
    stack = []
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        char = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in _PAIRS:
            stack.append(_PAIRS[char])
        elif char in "]}":
            if not stack or stack.pop() != char:
                return None
            if not stack:
                return i
    return None


def parse_balanced(text: str) -> Optional[List[Finding]]:
    """Collect every well-formed {...} or [...] embedded in prose."""
    findings = []
    found = False
    i = 0
    while i < len(text):
        if text[i] in _PAIRS:
            end = _matching_close(text, i)
            if end is not None:
                payload = _decode(text[i:end + 1])
                items = findings_from_payload(payload) if payload is not None else None
                if items is not None:
                    found = True
                    findings.extend(items)
                    i = end + 1
                    continue
        i += 1
    return findings if found else None


def parse_lines(text: str) -> Optional[List[Finding]]:
    """``KEY: VALUE`` lines; keys that map to no category are dropped."""
    findings = []
    for raw_line in text.splitlines():
        line = _BULLET.sub("", raw_line).replace("**", "").replace("__", "").strip()
        match = _KEY_VALUE.match(line)
        if not match:
            continue
        key = match.group(1).strip().strip('"\'')
        value = match.group(2).strip().rstrip(",;").strip().strip('"\'`').strip()
        if not value:
            continue
        category = normalize_category(key, value, default=None)
        if category is None:
            continue
        findings.append(Finding(value=value, category=category, label=_normalize_label(key)))
    return findings or None


RESCUE_CHAIN: List[Callable[[str], Optional[List[Finding]]]] = [
    parse_strict,
    parse_fenced,
    parse_balanced,
    parse_lines,
]


def parse_findings(text: Optional[str], max_words: int = MAX_VALUE_WORDS) -> List[Finding]:
    """
    Parse raw oracle output into findings. Never raises.

    Args:
        text: Raw response content
        max_words: Noise-filter word limit

    Returns:
        Noise-filtered findings from the first step that produced any
    """
    if not text or not text.strip():
        return []

    for step in RESCUE_CHAIN:
        findings = step(text)
        if findings:
            kept = filter_noise(findings, max_words=max_words)
            logger.debug(f"Parsed {len(findings)} findings via {step.__name__}, kept {len(kept)}")
            return kept

    logger.debug("No findings recovered from oracle response")
    return []


def parse_mapping(text: Optional[str]) -> Dict[str, str]:
    """
    Parse a {variant: canonical} JSON object out of oracle output.

    Tries the whole text, then fenced blocks, then the first '{' to the
    last '}'. Non-string entries are dropped; failure gives {}.
    """
    if not text or not text.strip():
        return {}

    snippets = [text.strip()]
    snippets.extend(m.group(1).strip() for m in _FENCE.finditer(text))
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        snippets.append(text[start:end + 1])

    for snippet in snippets:
        payload = _decode(snippet)
        if isinstance(payload, dict):
            return {
                k.strip(): v.strip()
                for k, v in payload.items()
                if isinstance(k, str) and isinstance(v, str) and k.strip() and v.strip()
            }
    return {}
