"""
auth/password_policy.py -- Password strength rules, scoring, and generation.

Pure functions: no state, no I/O. evaluate() is the single entry point used by
registration and password change; strength_label() maps a score to a band;
generate_strong() builds a password that always passes evaluate().

Rules are checked independently. A password that is too short AND missing a
digit reports both violations -- callers show the full list so the user can
fix everything in one attempt.

Layer rule: stdlib only.
"""

from __future__ import annotations

import re
import secrets
from dataclasses import dataclass, field
from enum import Enum

MIN_LENGTH = 8
MAX_LENGTH = 128

UPPERCASE = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
LOWERCASE = "abcdefghijklmnopqrstuvwxyz"
DIGITS = "0123456789"
SYMBOLS = "!@#$%^&*()_+-=[]{};':\"\\|,.<>/?"
ALPHABET = UPPERCASE + LOWERCASE + DIGITS + SYMBOLS

COMMON_PASSWORDS = frozenset(
    {
        "password",
        "password123",
        "12345678",
        "qwerty",
        "abc123",
        "monkey",
        "1234567890",
        "letmein",
        "trustno1",
        "dragon",
        "baseball",
        "iloveyou",
        "master",
        "sunshine",
        "ashley",
        "bailey",
        "passw0rd",
        "shadow",
        "123123",
        "654321",
    }
)

_SEQUENCE_RUN = 4
_REPEAT_RUN = 3
_REPEATED_RE = re.compile(r"(.)\1{%d,}" % (_REPEAT_RUN - 1), re.DOTALL)

# Length and distinct-character thresholds, +10 each.
_SCORE_THRESHOLDS = (8, 12, 16)


class Violation(str, Enum):
    TOO_SHORT = "too_short"
    TOO_LONG = "too_long"
    MISSING_UPPERCASE = "missing_uppercase"
    MISSING_LOWERCASE = "missing_lowercase"
    MISSING_DIGIT = "missing_digit"
    MISSING_SYMBOL = "missing_symbol"
    COMMON_PASSWORD = "common_password"
    SEQUENTIAL_CHARACTERS = "sequential_characters"
    REPEATED_CHARACTERS = "repeated_characters"

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_MESSAGES = {
    Violation.TOO_SHORT: f"Password must be at least {MIN_LENGTH} characters long",
    Violation.TOO_LONG: f"Password cannot exceed {MAX_LENGTH} characters",
    Violation.MISSING_UPPERCASE: "Password must contain at least one uppercase letter",
    Violation.MISSING_LOWERCASE: "Password must contain at least one lowercase letter",
    Violation.MISSING_DIGIT: "Password must contain at least one number",
    Violation.MISSING_SYMBOL: f"Password must contain at least one special character ({SYMBOLS})",
    Violation.COMMON_PASSWORD: "Password is too common. Please choose a more unique password",
    Violation.SEQUENTIAL_CHARACTERS: "Password should not contain sequential characters",
    Violation.REPEATED_CHARACTERS: "Password should not contain repeated characters (e.g., aaa, 111)",
}


@dataclass(frozen=True)
class PasswordEvaluation:
    valid: bool
    score: int
    violations: list[Violation] = field(default_factory=list)

    @property
    def strength(self) -> str:
        return strength_label(self.score)


# ---------------------------------------------------------------------------
# Character class helpers
# ---------------------------------------------------------------------------


def _has_any(password: str, charset: str) -> bool:
    return any(c in charset for c in password)


def _class_flags(password: str) -> tuple[bool, bool, bool, bool]:
    return (
        _has_any(password, UPPERCASE),
        _has_any(password, LOWERCASE),
        _has_any(password, DIGITS),
        _has_any(password, SYMBOLS),
    )


def has_sequential_run(password: str, run: int = _SEQUENCE_RUN) -> bool:
    """True if the password contains `run` ascending letters or digits in a row.

    Case-insensitive: "aBcD" counts. Letters and digits never chain into each
    other ("89ab" is not a run), and there is no wrap-around ("yzab").
    """
    lowered = password.lower()
    streak = 1
    for prev, cur in zip(lowered, lowered[1:]):
        same_family = (prev in LOWERCASE and cur in LOWERCASE) or (prev in DIGITS and cur in DIGITS)
        if same_family and ord(cur) == ord(prev) + 1:
            streak += 1
            if streak >= run:
                return True
        else:
            streak = 1
    return False


def has_repeated_run(password: str) -> bool:
    """True if any character appears three or more times consecutively."""
    return _REPEATED_RE.search(password) is not None


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


def score_password(password: str) -> int:
    """Return a 0-100 score, independent of whether the password is valid.

    +10 per length threshold reached (8/12/16), +10 per character class
    present, +10 per distinct-character threshold reached (8/12/16).
    """
    score = sum(10 for t in _SCORE_THRESHOLDS if len(password) >= t)
    score += 10 * sum(_class_flags(password))
    distinct = len(set(password))
    score += sum(10 for t in _SCORE_THRESHOLDS if distinct >= t)
    return min(score, 100)


def strength_label(score: int) -> str:
    if score < 40:
        return "weak"
    if score < 70:
        return "medium"
    if score < 90:
        return "strong"
    return "very strong"


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def evaluate(password: str) -> PasswordEvaluation:
    """Check every rule and score the password. Never short-circuits."""
    violations: list[Violation] = []

    if len(password) < MIN_LENGTH:
        violations.append(Violation.TOO_SHORT)
    if len(password) > MAX_LENGTH:
        violations.append(Violation.TOO_LONG)

    upper, lower, digit, symbol = _class_flags(password)
    if not upper:
        violations.append(Violation.MISSING_UPPERCASE)
    if not lower:
        violations.append(Violation.MISSING_LOWERCASE)
    if not digit:
        violations.append(Violation.MISSING_DIGIT)
    if not symbol:
        violations.append(Violation.MISSING_SYMBOL)

    if password.lower() in COMMON_PASSWORDS:
        violations.append(Violation.COMMON_PASSWORD)
    if has_sequential_run(password):
        violations.append(Violation.SEQUENTIAL_CHARACTERS)
    if has_repeated_run(password):
        violations.append(Violation.REPEATED_CHARACTERS)

    return PasswordEvaluation(valid=not violations, score=score_password(password), violations=violations)


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

_rng = secrets.SystemRandom()


def generate_strong(length: int = 16) -> str:
    """Return a random password of `length` characters that passes evaluate().

    One character from each required class is seeded, the rest is drawn from
    the full alphabet, then the lot is shuffled. A shuffle can still produce a
    sequential or repeated run by chance, so the candidate is re-checked and
    reshuffled (redrawn after a few misses) until it passes.
    """
    if not MIN_LENGTH <= length <= MAX_LENGTH:
        raise ValueError(f"length must be between {MIN_LENGTH} and {MAX_LENGTH}, got {length}")

    while True:
        chars = [secrets.choice(UPPERCASE), secrets.choice(LOWERCASE), secrets.choice(DIGITS), secrets.choice(SYMBOLS)]
        chars += [secrets.choice(ALPHABET) for _ in range(length - len(chars))]
        for _ in range(8):
            _rng.shuffle(chars)
            candidate = "".join(chars)
            if evaluate(candidate).valid:
                return candidate
