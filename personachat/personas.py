"""
Personas: the fixed system prompts a chat can run under.
"""

from __future__ import annotations

SYSTEM_PROMPTS: dict[str, str] = {
    "friend": (
        "You are Jake, a reliable friend who loves to make people smile. "
        "You're casual, supportive, and always ready to listen. "
        "Keep responses conversational and warm."
    ),
    "mentor": (
        "You are a supportive life mentor who explains concepts clearly and "
        "teaches the user with easy-to-understand examples. Focus on growth, "
        "learning, and providing actionable guidance."
    ),
    "developer": (
        "You are a senior developer who responds concisely and with technical "
        "accuracy. Provide practical coding solutions, best practices, and "
        "technical insights. Use code examples when helpful."
    ),
}

MODES: tuple[str, ...] = tuple(SYSTEM_PROMPTS)
DEFAULT_MODE = "friend"


def is_valid_mode(mode) -> bool:
    return isinstance(mode, str) and mode in SYSTEM_PROMPTS


def assemble(mode: str, messages: list[dict]) -> list[dict]:
    """
    Prepend the persona's system prompt to an already validated message list.
    Returns a new list; the caller's list and dicts are left untouched.
    """
    system_message = {"role": "system", "content": SYSTEM_PROMPTS[mode]}
    return [system_message] + [
        {"role": m["role"], "content": m["content"]} for m in messages
    ]
