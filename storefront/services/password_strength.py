"""Rule-based password strength scoring."""

import re

from pydantic import BaseModel, Field

MIN_LENGTH = 8
STRONG_SCORE = 4

COMMON_PASSWORDS = frozenset({"password", "123456", "qwerty", "admin", "welcome"})

_RULES = (
    (re.compile(r"[A-Z]"), "Add uppercase letters"),
    (re.compile(r"[a-z]"), "Add lowercase letters"),
    (re.compile(r"[0-9]"), "Add numbers"),
    (re.compile(r"[^A-Za-z0-9]"), "Add special characters"),
)


class PasswordStrength(BaseModel):
    """Score from 0 to 5 with feedback for the user."""

    score: int = Field(ge=0, le=5)
    feedback: str
    is_strong: bool


def check_password_strength(password: str) -> PasswordStrength:
    if not password:
        return PasswordStrength(score=0, feedback="Password is required", is_strong=False)

    score = 0
    feedback: list[str] = []

    if len(password) < MIN_LENGTH:
        feedback.append(f"Password should be at least {MIN_LENGTH} characters")
    else:
        score += 1

    for pattern, hint in _RULES:
        if pattern.search(password):
            score += 1
        else:
            feedback.append(hint)

    if password.lower() in COMMON_PASSWORDS:
        score = 0
        feedback.append("This is a commonly used password")

    return PasswordStrength(
        score=score,
        feedback=". ".join(feedback) or "Password is strong",
        is_strong=score >= STRONG_SCORE,
    )
