"""
Request validation for /api/chat.

Rules run in order and the first failure wins:
  1. messages is a non-empty list
  2. every message has a role in {user, assistant, system} and non-blank string content
  3. mode is a known persona
  4. total content length is at most max_total_chars characters
"""

from __future__ import annotations

from dataclasses import dataclass

from personachat.personas import MODES, is_valid_mode

VALID_ROLES = ("user", "assistant", "system")
MAX_TOTAL_CHARS = 10_000

INVALID_MESSAGES = (
    "Invalid messages format. Messages must be non-empty strings with valid roles."
)


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.ok


def _valid_message(msg) -> bool:
    return (
        isinstance(msg, dict)
        and msg.get("role") in VALID_ROLES
        and isinstance(msg.get("content"), str)
        and len(msg["content"].strip()) > 0
    )


def validate(messages, mode, max_total_chars: int = MAX_TOTAL_CHARS) -> ValidationResult:
    if not isinstance(messages, list) or not messages:
        return ValidationResult(False, INVALID_MESSAGES)

    if not all(_valid_message(m) for m in messages):
        return ValidationResult(False, INVALID_MESSAGES)

    if not is_valid_mode(mode):
        return ValidationResult(
            False, f"Invalid mode. Must be one of: {', '.join(MODES)}"
        )

    total = sum(len(m["content"]) for m in messages)
    if total > max_total_chars:
        return ValidationResult(
            False,
            f"Message content too long. Please keep messages under "
            f"{max_total_chars:,} characters.",
        )

    return ValidationResult(True)
