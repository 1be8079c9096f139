"""Prompt templates for the discovery oracle."""

import json
from typing import Dict, List, Sequence

from ..types import Candidate, Category, Finding

# Hints beyond this are dropped to keep the prompt small
MAX_HINTS = 40


CATEGORY_DEFINITIONS: Dict[Category, str] = {
    Category.FULL_NAME: "first name and surname of a natural person",
    Category.ORGANIZATION: "name of a company, public body or association",
    Category.PLACE_OF_BIRTH: "city or country where a person was born",
    Category.DATE_OF_BIRTH: "date on which a person was born",
    Category.GENDER: "sex or gender of a person",
    Category.NATIONALITY: "citizenship or nationality of a person",
    Category.ID_DOCUMENT: "number of an identity card, passport or driving licence",
    Category.FISCAL_CODE: "Italian codice fiscale, 16 alphanumeric characters",
    Category.VAT_NUMBER: "Italian partita IVA, 11 digits",
    Category.US_EIN: "US employer identification number, NN-NNNNNNN",
    Category.ADDRESS: "street address with number, postcode or city",
    Category.EMAIL: "e-mail address",
    Category.PHONE_NUMBER: "landline or mobile phone number",
    Category.DATE: "any other calendar date tied to a person",
    Category.IBAN: "international bank account number",
    Category.CREDIT_CARD: "payment card number",
    Category.FINANCIAL_DATA: "income, salary, debts, credit rating or account balances",
    Category.IP_ADDRESS: "IPv4 or IPv6 address",
    Category.URL: "web address that identifies a person",
    Category.HEALTH_DATA: "diagnoses, therapies, medication, physical or mental health",
    Category.BIOMETRIC_DATA: "fingerprints, face or voice data used for identification",
    Category.GENETIC_DATA: "inherited or acquired genetic characteristics",
    Category.POLITICAL_OPINION: "political opinions or party membership",
    Category.RELIGIOUS_BELIEF: "religious or philosophical beliefs",
    Category.TRADE_UNION: "trade union membership",
    Category.SEXUAL_ORIENTATION: "sexual orientation or sex life",
    Category.PROFESSIONAL_ROLE: "job title or professional position of a person",
}


def _taxonomy() -> str:
    return "\n".join(
        f"- {category.value}: {definition}"
        for category, definition in CATEGORY_DEFINITIONS.items()
    )


SYSTEM_PROMPT = """You find personal data (PII) in documents.

Classify every value with EXACTLY one of these categories:
{taxonomy}

Rules:
- Copy each value exactly as it appears in the text (same spaces and case).
- Do not invent values and do not copy values from these instructions.
- Skip already-anonymized tokens such as [FULL_NAME_1].
- Answer ONLY with a JSON array, no prose:
[{{"value": "<text>", "category": "<CATEGORY>"}}]
- If there is no personal data, answer [].
"""


USER_PROMPT = """Known candidates in this text (confirm them if they are personal data, and look around them):
{hints}

Text:
{text}
"""


SURFACE_FORM_PROMPT = """These values were found in the same document:
{values}

Some may be different spellings or partial forms of the same entity
(for example "Sig. Rossi" and "Mario Rossi"). Answer ONLY with a JSON
object mapping each variant to its canonical full form, using values
from the list. Leave out values that have no variant. Answer {{}} if none.
"""


def select_hints(candidates: Sequence[Candidate], chunk_text: str, limit: int = MAX_HINTS) -> List[Candidate]:
    """Candidates whose value occurs in the chunk (case-insensitive)."""
    lowered = chunk_text.lower()
    hints = []
    seen = set()
    for candidate in candidates:
        value = candidate.value.strip()
        key = value.lower()
        if not value or key in seen or key not in lowered:
            continue
        seen.add(key)
        hints.append(candidate)
        if len(hints) >= limit:
            break
    return hints


def build_messages(chunk_text: str, hints: Sequence[Candidate]) -> List[Dict[str, str]]:
    """
    Build the chat turns for one chunk.

    Args:
        chunk_text: The chunk to analyse
        hints: Scanner candidates present in this chunk

    Returns:
        [system, user] messages in OpenAI/Ollama chat format
    """
    if hints:
        hint_lines = "\n".join(f"- {c.value} ({c.category.value})" for c in hints)
    else:
        hint_lines = "(none)"

    return [
        {"role": "system", "content": SYSTEM_PROMPT.format(taxonomy=_taxonomy())},
        {"role": "user", "content": USER_PROMPT.format(hints=hint_lines, text=chunk_text)},
    ]


def build_surface_form_messages(findings: Sequence[Finding]) -> List[Dict[str, str]]:
    """Build the chat turns asking the oracle to group spelling variants."""
    values = json.dumps([f.value for f in findings], ensure_ascii=False)
    return [{"role": "user", "content": SURFACE_FORM_PROMPT.format(values=values)}]
