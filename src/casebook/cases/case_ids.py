"""
Display case IDs.

A display case ID is the short code moderators type into lookup commands,
e.g. ``K7M2QX9ABH``. It is drawn from a phone-friendly alphabet without the
easily confused ``0``, ``1``, ``I`` and ``O``, and is unique across every
guild the bot serves. The internal UUID primary key is never shown.

With 32 symbols and 10 positions there are 32^10 (about 1.1e15) IDs, so
collisions stay improbable long after a bot has logged millions of cases;
:func:`estimate_collision_probability` gives the exact birthday figure.
"""

from __future__ import annotations

import math
import secrets

from casebook.cases.errors import CaseValidationError

CASE_ID_ALPHABET = "23456789ABCDEFGHJKLMNPQRSTUVWXYZ"
CASE_ID_LENGTH = 10
FALLBACK_CASE_ID_LENGTH = 12

_ALPHABET_SET = frozenset(CASE_ID_ALPHABET)


def generate_case_id(length: int = CASE_ID_LENGTH) -> str:
    """Return a random case ID of exactly ``length`` characters.

    Characters are drawn independently with :mod:`secrets` so IDs cannot be
    predicted from previously issued ones.
    """
    if length < 1:
        raise CaseValidationError(f"Case ID length must be positive, got {length}")
    return "".join(secrets.choice(CASE_ID_ALPHABET) for _ in range(length))


def is_valid_case_id(case_id: object, *, include_fallback: bool = False) -> bool:
    """Check that ``case_id`` is a well-formed display case ID.

    Matching is case-insensitive. By default only the regular 10-character
    form is accepted; ``include_fallback`` also admits the 12-character IDs
    issued when the regular keyspace looked saturated.
    """
    if not isinstance(case_id, str):
        return False
    lengths = (CASE_ID_LENGTH, FALLBACK_CASE_ID_LENGTH) if include_fallback else (CASE_ID_LENGTH,)
    if len(case_id) not in lengths:
        return False
    return all(char in _ALPHABET_SET for char in case_id.upper())


def normalize_case_id(case_id: object) -> str:
    """Return the stored (uppercase) form of a user-typed case ID.

    Raises:
        CaseValidationError: If the input is not a 10 or 12 character ID over
            the case ID alphabet.
    """
    candidate = case_id.strip().upper() if isinstance(case_id, str) else case_id
    if not is_valid_case_id(candidate, include_fallback=True):
        raise CaseValidationError(
            f"Invalid case ID {case_id!r}: expected {CASE_ID_LENGTH} characters "
            "using digits 2-9 and letters other than I and O"
        )
    return candidate


def format_case_id(case_id: str) -> str:
    """Uppercase ``case_id`` and cut it to the regular display length."""
    return case_id.upper()[:CASE_ID_LENGTH]


def calculate_total_combinations(length: int = CASE_ID_LENGTH) -> int:
    """Number of distinct case IDs of the given length."""
    return len(CASE_ID_ALPHABET) ** length


def estimate_collision_probability(num_cases: int, length: int = CASE_ID_LENGTH) -> float:
    """Probability that ``num_cases`` random IDs contain at least one duplicate.

    Uses the birthday approximation ``1 - exp(-n(n-1) / 2N)``. ``expm1`` keeps
    the tiny results for realistic case counts from rounding to zero.
    """
    if num_cases < 0:
        raise CaseValidationError(f"Number of cases must be non-negative, got {num_cases}")
    if num_cases < 2:
        return 0.0
    exponent = (num_cases * (num_cases - 1)) / (2 * calculate_total_combinations(length))
    return -math.expm1(-exponent)
