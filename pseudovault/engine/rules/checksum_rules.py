"""
Checksum validators for structured identifiers.

These have ALGORITHMIC CERTAINTY - a structural match that fails its
check is a typo or a coincidence and is never reported as HIGH.

Validators:
- Italian fiscal code (codice fiscale check character)
- Credit card (Luhn checksum + length)
- IBAN (Mod-97 checksum)

All functions are pure: normalized string in, bool out.
"""

import logging

logger = logging.getLogger(__name__)


# =============================================================================
# FISCAL CODE
# =============================================================================

# Values for characters in odd positions (1st, 3rd, ... 15th)
_FISCAL_ODD = {
    '0': 1, '1': 0, '2': 5, '3': 7, '4': 9, '5': 13, '6': 15, '7': 17, '8': 19, '9': 21,
    'A': 1, 'B': 0, 'C': 5, 'D': 7, 'E': 9, 'F': 13, 'G': 15, 'H': 17, 'I': 19, 'J': 21,
    'K': 2, 'L': 4, 'M': 18, 'N': 20, 'O': 11, 'P': 3, 'Q': 6, 'R': 8, 'S': 12, 'T': 14,
    'U': 16, 'V': 10, 'W': 22, 'X': 25, 'Y': 24, 'Z': 23,
}

# Values for characters in even positions (2nd, 4th, ... 14th)
_FISCAL_EVEN = {
    '0': 0, '1': 1, '2': 2, '3': 3, '4': 4, '5': 5, '6': 6, '7': 7, '8': 8, '9': 9,
    'A': 0, 'B': 1, 'C': 2, 'D': 3, 'E': 4, 'F': 5, 'G': 6, 'H': 7, 'I': 8, 'J': 9,
    'K': 10, 'L': 11, 'M': 12, 'N': 13, 'O': 14, 'P': 15, 'Q': 16, 'R': 17, 'S': 18,
    'T': 19, 'U': 20, 'V': 21, 'W': 22, 'X': 23, 'Y': 24, 'Z': 25,
}


def fiscal_code_check_char(code: str) -> str:
    """Compute the check character for the first 15 chars of a fiscal code."""
    total = 0
    for i, char in enumerate(code[:15].upper()):
        if i % 2 == 0:  # 1-indexed odd position
            total += _FISCAL_ODD[char]
        else:
            total += _FISCAL_EVEN[char]
    return chr(ord('A') + total % 26)


def validate_fiscal_code(code: str) -> bool:
    """
    Validate an Italian fiscal code (codice fiscale).

    Odd positions map through one table, even positions through another;
    the weighted sum mod 26 must equal the 16th character's alphabet position.
    Anything that is not exactly 16 alphanumeric characters is rejected.
    """
    if code is None:
        return False
    cleaned = code.strip().upper()
    if len(cleaned) != 16 or not cleaned.isascii() or not cleaned.isalnum():
        return False
    if not cleaned[15].isalpha():
        return False
    return fiscal_code_check_char(cleaned) == cleaned[15]


# =============================================================================
# LUHN / CREDIT CARD
# =============================================================================

def luhn_checksum(number: str) -> bool:
    """
    Validate number using Luhn algorithm.

    Spaces, dashes and other separators are stripped first. Every second
    digit from the right is doubled (minus 9 when it exceeds 9).
    """
    if number is None:
        return False
    cleaned = ''.join(c for c in number if not c.isspace() and c not in '-.')
    if not cleaned or not cleaned.isascii() or not cleaned.isdigit():
        return False

    digits = [int(d) for d in cleaned]
    odd_digits = digits[-1::-2]
    even_digits = digits[-2::-2]
    total = sum(odd_digits)
    for d in even_digits:
        total += sum(divmod(d * 2, 10))
    return total % 10 == 0


def validate_credit_card(text: str) -> bool:
    """Validate credit card with Luhn and length check."""
    digits = ''.join(d for d in text if d.isdigit())

    # Valid card lengths: 13-19 digits
    if len(digits) < 13 or len(digits) > 19:
        return False

    return luhn_checksum(digits)


# =============================================================================
# IBAN
# =============================================================================

def validate_iban(iban: str) -> bool:
    """Validate IBAN using mod-97 checksum."""
    cleaned = ''.join(iban.split()).upper()

    if len(cleaned) < 15 or len(cleaned) > 34:
        return False
    if not cleaned.isascii() or not cleaned.isalnum():
        return False

    # Move first 4 chars to end
    rearranged = cleaned[4:] + cleaned[:4]

    # Convert letters to numbers (A=10, B=11, etc.)
    numeric = ''
    for char in rearranged:
        if char.isdigit():
            numeric += char
        else:
            numeric += str(ord(char) - 55)

    return int(numeric) % 97 == 1
