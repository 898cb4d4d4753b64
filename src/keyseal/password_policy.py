"""Password checks applied before protecting a newly generated key."""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field

DEFAULT_MIN_LENGTH = 12

_COMMON_PASSWORDS: frozenset[str] = frozenset(
    {
        "password", "password1", "password123", "123456", "12345678", "123456789",
        "1234567890", "qwerty", "qwerty123", "abc123", "iloveyou", "admin",
        "letmein", "welcome", "monkey", "dragon", "master", "sunshine",
        "trustno1", "passw0rd", "1q2w3e4r", "qazwsx", "hunter2", "000000",
        "111111", "123123", "654321", "correcthorsebatterystaple",
    }
)

_SEQUENCES = re.compile(r"(012|123|234|345|456|567|678|789|890|abc|bcd|cde|def|xyz|qwe|asd)")


class WeakPasswordError(ValueError):
    """Raised when a password fails the policy and weak passwords are not allowed."""

    def __init__(self, problems: list[str]) -> None:
        self.problems = problems
        super().__init__("; ".join(problems))


@dataclass(frozen=True)
class PasswordAssessment:
    entropy_bits: float
    problems: list[str] = field(default_factory=list)

    @property
    def acceptable(self) -> bool:
        return not self.problems


def estimate_entropy(password: str) -> float:
    """Rough entropy estimate in bits from length and character classes."""
    pool = 0
    if re.search(r"[a-z]", password):
        pool += 26
    if re.search(r"[A-Z]", password):
        pool += 26
    if re.search(r"[0-9]", password):
        pool += 10
    if re.search(r"[^a-zA-Z0-9]", password):
        pool += 33
    if pool == 0:
        return 0.0
    return len(password) * math.log2(pool)


def assess_password(password: str, *, min_length: int = DEFAULT_MIN_LENGTH) -> PasswordAssessment:
    problems: list[str] = []
    if not password:
        return PasswordAssessment(entropy_bits=0.0, problems=["Password must not be empty"])

    if len(password) < min_length:
        problems.append(f"Use at least {min_length} characters")
    if password.lower() in _COMMON_PASSWORDS:
        problems.append("Password is on the list of commonly breached passwords")
    if re.fullmatch(r"(.)\1*", password):
        problems.append("Password must not be a single repeated character")
    elif _SEQUENCES.search(password.lower()):
        problems.append("Avoid keyboard and alphabet sequences such as 123 or abc")

    return PasswordAssessment(entropy_bits=estimate_entropy(password), problems=problems)


def enforce_password(
    password: str,
    *,
    min_length: int = DEFAULT_MIN_LENGTH,
    allow_weak: bool = False,
) -> PasswordAssessment:
    """Return the assessment, raising :exc:`WeakPasswordError` unless allowed.

    An empty password is rejected even when ``allow_weak`` is set.
    """
    if not password:
        raise WeakPasswordError(["Password must not be empty"])
    assessment = assess_password(password, min_length=min_length)
    if not assessment.acceptable and not allow_weak:
        raise WeakPasswordError(assessment.problems)
    return assessment
