"""
Password utilities for the credential manager.

Generation and strength scoring run entirely on the client. The hashing
helper is provided for callers that only ever need to verify a secret; it is
not applied to stored credentials, which must be readable again.
"""

import re
import secrets
from typing import List, NamedTuple, Optional

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from . import config

_UPPER = re.compile(r"[A-Z]")
_LOWER = re.compile(r"[a-z]")
_DIGIT = re.compile(r"[0-9]")
_SYMBOL = re.compile(r"[^A-Za-z0-9]")


class PasswordStrength(NamedTuple):
    """Score (0-6) plus the label and suggestions shown to the user."""
    score: int
    feedback: List[str]

    @property
    def is_acceptable(self) -> bool:
        return self.score >= config.STRENGTH_WEAK_BELOW


def generate_strong_password(length: int = config.PASSWORD_GENERATOR_DEFAULT_LENGTH, rng=None) -> str:
    """
    Generate a random password.

    Args:
        length: Number of characters to produce
        rng: Object with a ``choice`` method; defaults to the system CSPRNG

    Returns:
        A string of exactly ``length`` characters from PASSWORD_ALPHABET.
        Character-class coverage is not guaranteed.
    """
    if length < 0:
        raise ValueError(f"Password length must be non-negative, got {length}")
    rng = rng or secrets.SystemRandom()
    return ''.join(rng.choice(config.PASSWORD_ALPHABET) for _ in range(length))


def check_password_strength(password: str) -> PasswordStrength:
    """
    Score a password and explain what is missing.

    One point each for: length >= 8, length >= 12, an uppercase letter,
    a lowercase letter, a digit, a symbol.
    """
    has_min_length = len(password) >= config.STRENGTH_MIN_LENGTH
    has_upper = bool(_UPPER.search(password))
    has_lower = bool(_LOWER.search(password))
    has_digit = bool(_DIGIT.search(password))
    has_symbol = bool(_SYMBOL.search(password))

    score = sum([
        has_min_length,
        len(password) >= config.STRENGTH_LONG_LENGTH,
        has_upper,
        has_lower,
        has_digit,
        has_symbol,
    ])

    if score < config.STRENGTH_WEAK_BELOW:
        feedback = ["Password is weak"]
    elif score < config.STRENGTH_MODERATE_BELOW:
        feedback = ["Password is moderate"]
    else:
        feedback = ["Password is strong"]

    if not has_min_length:
        feedback.append(f"Password should be at least {config.STRENGTH_MIN_LENGTH} characters long")
    if not has_upper:
        feedback.append("Add uppercase letters")
    if not has_lower:
        feedback.append("Add lowercase letters")
    if not has_digit:
        feedback.append("Add numbers")
    if not has_symbol:
        feedback.append("Add special characters")

    return PasswordStrength(score, feedback)


class CryptoManager:
    """Argon2id hashing with a fixed work factor."""

    def __init__(self, hasher: Optional[PasswordHasher] = None):
        self.ph = hasher or PasswordHasher(
            time_cost=config.ARGON2_TIME_COST,
            memory_cost=config.ARGON2_MEMORY_COST,
            parallelism=config.ARGON2_PARALLELISM,
            type=Type.ID
        )

    def hash_password(self, password: str) -> str:
        """Return an encoded argon2id hash (salt and parameters included)."""
        return self.ph.hash(password)

    def verify_password(self, password_hash: str, password: str) -> bool:
        """Constant-time check of ``password`` against an encoded hash."""
        try:
            return self.ph.verify(password_hash, password)
        except (VerifyMismatchError, VerificationError, InvalidHashError):
            return False


def hash_password(password: str) -> str:
    return CryptoManager().hash_password(password)


def verify_password(password_hash: str, password: str) -> bool:
    return CryptoManager().verify_password(password_hash, password)
