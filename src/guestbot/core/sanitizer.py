"""Input sanitizer for guest questions.

Strips control characters, enforces a length cap and refuses prompt
injection attempts outright. Adversarial text is never "repaired": a
single signature hit rejects the whole question.

All whitespace quantifiers in the signature catalogue are bounded
(``\\s{1,20}`` rather than ``\\s+``) so attacker-controlled input cannot
trigger catastrophic backtracking.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final

MAX_QUESTION_LENGTH: Final[int] = 500
MAX_HISTORY_MESSAGES: Final[int] = 10  # 5 user/model exchanges
MAX_HISTORY_MESSAGE_LENGTH: Final[int] = 500
HISTORY_ROLES: Final[frozenset[str]] = frozenset({"user", "model"})

# C0 controls except tab, LF and CR; DEL; C1 controls.
_CONTROL_CHARS: Final[re.Pattern[str]] = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F-\x9F]")


@dataclass(frozen=True)
class Signature:
    name: str
    pattern: re.Pattern[str]


def _sig(name: str, pattern: str) -> Signature:
    return Signature(name=name, pattern=re.compile(pattern, re.IGNORECASE))


INJECTION_SIGNATURES: Final[tuple[Signature, ...]] = (
    # Instruction override
    _sig("ignore_previous", r"ignore\s{1,20}(?:all\s{1,20})?previous\s{1,20}instructions"),
    _sig("ignore_above", r"ignore\s{1,20}(?:all\s{1,20})?above\s{1,20}instructions"),
    _sig("disregard_previous", r"disregard\s{1,20}(?:all\s{1,20})?previous"),
    _sig("forget_previous", r"forget\s{1,20}(?:all\s{1,20})?previous"),
    _sig("override_instructions", r"override\s{1,20}(?:all\s{1,20})?instructions"),
    _sig("new_instructions", r"new\s{1,20}instructions?\s{0,5}:"),
    # System prompt extraction
    _sig("system_prompt", r"system\s{0,10}prompt"),
    _sig(
        "reveal_prompt",
        r"reveal\s{1,20}(?:your|the)\s{1,20}(?:system|initial|original)\s{1,20}"
        r"(?:prompt|instructions|message)",
    ),
    _sig(
        "ask_instructions",
        r"what\s{1,20}(?:are|is)\s{1,20}your\s{1,20}(?:system\s{1,20})?instructions",
    ),
    _sig("show_prompt", r"show\s{1,20}(?:me\s{1,20})?(?:your|the)\s{1,20}(?:system\s{1,20})?prompt"),
    _sig(
        "repeat_prompt",
        r"repeat\s{1,20}(?:your|the)\s{1,20}(?:system\s{1,20})?(?:prompt|instructions)",
    ),
    _sig(
        "print_prompt",
        r"print\s{1,20}(?:your|the)\s{1,20}(?:system\s{1,20})?(?:prompt|instructions)",
    ),
    _sig(
        "output_prompt",
        r"output\s{1,20}(?:your|the)\s{1,20}(?:system\s{1,20})?(?:prompt|instructions)",
    ),
    # Persona / roleplay
    _sig("you_are_now", r"you\s{1,20}are\s{1,20}now"),
    _sig("pretend", r"pretend\s{1,20}(?:you\s{1,20}are|to\s{1,20}be)"),
    _sig("act_as", r"act\s{1,20}as\s{1,20}(?:a|an|if)"),
    _sig("roleplay", r"roleplay\s{1,20}as"),
    # Jailbreak personas
    _sig("jailbreak", r"jailbreak"),
    _sig("dan_mode", r"DAN\s{1,20}mode"),
    _sig("developer_mode", r"developer\s{1,20}mode"),
    _sig("do_anything_now", r"do\s{1,20}anything\s{1,20}now"),
    _sig(
        "bypass_rules",
        r"bypass\s{1,20}(?:your|the|all)\s{1,20}(?:rules|restrictions|filters|safety)",
    ),
    # Chat-template control tokens
    _sig("inst_open", r"\[INST\]"),
    _sig("inst_close", r"\[/INST\]"),
    _sig("sys_block", r"<<SYS>>"),
    _sig("system_tag", r"</?system>"),
    _sig("human_turn", r"\bhuman\s{0,5}:"),
    _sig("assistant_turn", r"\bassistant\s{0,5}:"),
)


@dataclass(frozen=True)
class InjectionScan:
    safe: bool
    flagged: tuple[str, ...] = ()


@dataclass(frozen=True)
class SanitizationResult:
    sanitized: str
    was_modified: bool
    rejected: bool
    injection_detected: bool = False
    flagged_patterns: tuple[str, ...] = ()


def remove_control_chars(text: str) -> str:
    """Remove control characters, keeping tab, newline and carriage return."""
    return _CONTROL_CHARS.sub("", text)


def detect_injection(text: str) -> InjectionScan:
    """Scan ``text`` against every injection signature."""
    flagged = tuple(sig.name for sig in INJECTION_SIGNATURES if sig.pattern.search(text))
    return InjectionScan(safe=not flagged, flagged=flagged)


def sanitize_question(raw: object, max_length: int = MAX_QUESTION_LENGTH) -> SanitizationResult:
    """Normalize, bound and injection-scan a guest question."""
    if not isinstance(raw, str) or not raw:
        return SanitizationResult(sanitized="", was_modified=False, rejected=True)

    trimmed = raw.strip()
    sanitized = remove_control_chars(trimmed)
    was_modified = sanitized != trimmed

    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length]
        was_modified = True

    if not sanitized.strip():
        return SanitizationResult(sanitized="", was_modified=was_modified, rejected=True)

    scan = detect_injection(sanitized)
    if not scan.safe:
        return SanitizationResult(
            sanitized=sanitized,
            was_modified=was_modified,
            rejected=True,
            injection_detected=True,
            flagged_patterns=scan.flagged,
        )

    return SanitizationResult(sanitized=sanitized, was_modified=was_modified, rejected=False)


def sanitize_history(history: Sequence[Any] | None) -> list[dict[str, str]]:
    """Validate client-supplied conversation history.

    Keeps the most recent messages, drops unknown roles and repeated roles,
    caps each message and trims so the history starts with ``user`` and
    ends with ``model`` (the current question is always the next ``user``
    turn).
    """
    if not isinstance(history, Sequence) or isinstance(history, str):
        return []

    cleaned: list[dict[str, str]] = []
    for message in list(history)[-MAX_HISTORY_MESSAGES:]:
        if isinstance(message, Mapping):
            role, text = message.get("role"), message.get("text")
        else:
            role, text = getattr(message, "role", None), getattr(message, "text", None)
        if role not in HISTORY_ROLES or not isinstance(text, str):
            continue
        if cleaned and cleaned[-1]["role"] == role:
            continue
        text = remove_control_chars(text.strip())[:MAX_HISTORY_MESSAGE_LENGTH]
        if not text:
            continue
        cleaned.append({"role": role, "text": text})

    while cleaned and cleaned[0]["role"] != "user":
        cleaned.pop(0)
    while cleaned and cleaned[-1]["role"] != "model":
        cleaned.pop()
    return cleaned
