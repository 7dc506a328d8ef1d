# Copyright (C) 2025 The Kurral Engine Authors
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# Kurral Engine is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with Kurral Engine. If not, see <https://www.gnu.org/licenses/>.

"""Text helpers for prompt building and claim matching."""

from __future__ import annotations

import re

MAX_PROMPT_TEXT_CHARS = 2000

_CONTROL_CHARS = re.compile(r"[\u0000-\u0008\u000B\u000C\u000E-\u001F\u007F-\u009F]")

_IGNORE_PATTERNS = [
    r"ignore\s+(all\s+)?(previous|prior|above|earlier)\s+(instructions?|prompts?|directions?|rules?)",
    r"disregard\s+(all\s+)?(previous|prior|above|earlier)\s+(instructions?|prompts?|directions?)",
    r"forget\s+(all\s+)?(previous|prior|above|earlier)\s+(instructions?|prompts?)",
    r"override\s+(all\s+)?(previous|prior|above|earlier)\s+(instructions?|prompts?)",
    r"system\s*:\s*ignore",
    r"you\s+are\s+now",
    r"from\s+now\s+on",
    r"new\s+instructions?\s*:",
]

_ROLE_PATTERNS = [
    r"you\s+are\s+(now\s+)?(a|an)\s+[^.]+[.,;]",
    r"act\s+as\s+(if\s+you\s+are\s+)?(a|an)\s+[^.]+[.,;]",
    r"pretend\s+(to\s+be|that\s+you\s+are)\s+(a|an)\s+[^.]+",
    r"role\s*:\s*[^\n]+",
    r"persona\s*:\s*[^\n]+",
]

_FORMAT_PATTERNS = [
    r"output\s+(format|style|mode)\s*:\s*[^\n]+",
    r"respond\s+(in|as|with)\s+(the\s+following|this|json|xml|markdown|html)",
    r"use\s+(the\s+following|this)\s+(format|structure|template)",
    r"return\s+([^.]+)\s+instead",
]

_DELIMITER_PATTERNS = [
    r"(---+|===+|###+)\s*new\s+(instruction|prompt|context|task)",
    r"<\|begin_of_text\|>",
    r"<\|end_of_text\|>",
    r"\[(BEGIN|END)\s+(INSTRUCTION|PROMPT)\]",
]

_HEADER_PATTERN = re.compile(r"(^|\n)\s*(instruction|command|execute|do\s+this)\s*[:\-]\s*", re.IGNORECASE)


def _replace_all(text: str, patterns: list[str], replacement: str) -> str:
    for pattern in patterns:
        text = re.sub(pattern, replacement, text, flags=re.IGNORECASE)
    return text


def sanitize_for_prompt(value: str | None, *, max_chars: int = MAX_PROMPT_TEXT_CHARS) -> str:
    """
    Neutralize user-authored text before it is embedded in an oracle prompt.

    Strips control characters, code fences, chat-template tokens and common
    prompt-injection phrasing, then truncates and collapses whitespace.
    """
    if not value:
        return ""

    s = _CONTROL_CHARS.sub("", value)
    s = re.sub(r"```[\s\S]*?```", "[code block removed]", s)
    s = re.sub(r"`[^`]+`", "[code removed]", s)
    s = re.sub(r"<\|im_(start|end)\|>", "", s, flags=re.IGNORECASE)
    s = re.sub(r"<\|[^|]+\|>", "", s)
    s = re.sub(r"\[/?INST\]", "", s, flags=re.IGNORECASE)

    s = _replace_all(s, _IGNORE_PATTERNS, "[instruction removed]")
    s = _replace_all(s, _ROLE_PATTERNS, "[role instruction removed]")
    s = _replace_all(s, _FORMAT_PATTERNS, "[format instruction removed]")
    s = _replace_all(s, _DELIMITER_PATTERNS, "[delimiter removed]")
    s = _HEADER_PATTERN.sub(r"\1[instruction header removed]: ", s)

    if len(s) > max_chars:
        s = s[:max_chars] + " [truncated]"

    return re.sub(r"\s+", " ", s).strip()


def _word_set(text: str) -> set[str]:
    normalized = re.sub(r"[^\w\s]", " ", (text or "").lower().strip())
    return {w for w in normalized.split() if w}


def jaccard_similarity(a: str, b: str) -> float:
    """Word-set Jaccard similarity, punctuation and case insensitive."""
    wa, wb = _word_set(a), _word_set(b)
    if not wa or not wb:
        return 0.0
    if wa == wb:
        return 1.0
    return len(wa & wb) / len(wa | wb)


def truncate(text: str, limit: int) -> str:
    text = (text or "").strip()
    return text if len(text) <= limit else text[:limit].rstrip()
