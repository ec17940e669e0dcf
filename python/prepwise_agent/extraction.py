"""
Best-effort interview parameter extraction from a call transcript.

Used only when a generation call ends without the provider reporting a
structured function-call result. Matching is keyword and regex based and
deliberately approximate: the technology vocabulary is a fixed list, so
stacks outside it fall back to the default.

Last Grunted: 10/15/2026
"""

import logging
import re
from typing import Optional

from .models import ExtractedInterviewInfo


__all__ = [
    "DEFAULT_ROLE",
    "DEFAULT_LEVEL",
    "DEFAULT_TECHSTACK",
    "DEFAULT_TYPE",
    "DEFAULT_AMOUNT",
    "TECH_VOCABULARY",
    "extract_interview_info",
]


logger = logging.getLogger(__name__)


DEFAULT_ROLE = "Software Developer"
DEFAULT_LEVEL = "Mid-level"
DEFAULT_TECHSTACK = "JavaScript, React"
DEFAULT_TYPE = "Mixed"
DEFAULT_AMOUNT = 10

MIN_AMOUNT = 1
MAX_AMOUNT = 20

# (canonical name, pattern). Output keeps this order.
TECH_VOCABULARY: tuple[tuple[str, str], ...] = (
    ("react", r"react(?:\.js|js)?"),
    ("vue", r"vue(?:\.js|js)?"),
    ("angular", r"angular(?:js)?"),
    ("node", r"node(?:\.js|js)?"),
    ("python", r"python"),
    ("java", r"java(?!\s*script)"),
    ("typescript", r"typescript"),
    ("javascript", r"javascript"),
    ("next.js", r"next(?:\.js|js)"),
    ("express", r"express(?:\.js|js)?"),
    ("mongodb", r"mongo(?:db)?"),
    ("postgresql", r"postgres(?:ql)?"),
    ("aws", r"aws"),
    # Bare "go" is too common in speech; only the capitalised word counts.
    ("go", r"golang|(?-i:Go)"),
)

_TECH_PATTERNS = tuple(
    (name, re.compile(rf"\b(?:{pattern})(?!\w)", re.IGNORECASE))
    for name, pattern in TECH_VOCABULARY
)

_ROLE_STATED = re.compile(
    r"\b(?:role|position|job)\s*(?:is|:)\s*(?:an?\s+|the\s+)?"
    r"([A-Za-z][\w+#.\- ]{1,60}?)"
    r"(?=\s*[,.;!?\n]|\s+(?:using|with|at|and|for)\b|\s*$)",
    re.IGNORECASE,
)
_ROLE_DESCRIBED = re.compile(
    r"\b(?:an?|the|for)\s+((?:[A-Za-z][\w+#.\-]*\s+){0,3}[A-Za-z][\w+#.\-]*)\s+"
    r"(?:role|position|job)\b",
    re.IGNORECASE,
)
_LEADING_ARTICLE = re.compile(r"^(?:an?|the)\s+", re.IGNORECASE)

_LEVEL = re.compile(r"\b(junior|mid-level|senior|entry|experienced)\b", re.IGNORECASE)
_TYPE = re.compile(r"\b(technical|behavioral|behavioural|mixed)\b", re.IGNORECASE)
_AMOUNT = re.compile(r"\b(\d+)\s*(?:questions?|qs?)\b", re.IGNORECASE)


def _extract_role(text: str) -> Optional[str]:
    match = _ROLE_STATED.search(text)
    if match:
        role = match.group(1).strip()
        if role:
            return role

    match = _ROLE_DESCRIBED.search(text)
    if match:
        role = _LEADING_ARTICLE.sub("", match.group(1).strip())
        if role:
            return role
    return None


def _extract_techstack(text: str) -> Optional[str]:
    found = [name for name, pattern in _TECH_PATTERNS if pattern.search(text)]
    return ", ".join(found) if found else None


def _extract_type(text: str) -> Optional[str]:
    match = _TYPE.search(text)
    if not match:
        return None
    value = match.group(1).lower()
    if value == "behavioural":
        value = "behavioral"
    return value.capitalize()


def _extract_amount(text: str) -> Optional[int]:
    match = _AMOUNT.search(text)
    if not match:
        return None
    amount = int(match.group(1))
    if amount < MIN_AMOUNT or amount > MAX_AMOUNT:
        logger.debug("Ignoring out-of-range question count: %d", amount)
        return None
    return amount


def extract_interview_info(transcript: str) -> Optional[ExtractedInterviewInfo]:
    """
    Reconstruct interview parameters from concatenated transcript text.

    Unmatched fields take the defaults: role "Software Developer", level
    "Mid-level", techstack "JavaScript, React", type "Mixed", amount 10.

    Args:
        transcript: All finalized fragments joined by spaces.

    Returns:
        ExtractedInterviewInfo, or None when no field matched at all.

    Example:
        >>> info = extract_interview_info(
        ...     "I want a Senior Backend role using Go and Postgres, 8 questions, technical"
        ... )
        >>> info.role, info.level, info.type, info.amount
        ('Senior Backend', 'senior', 'Technical', 8)
    """
    if not transcript or not transcript.strip():
        return None

    role = _extract_role(transcript)
    level_match = _LEVEL.search(transcript)
    level = level_match.group(1).lower() if level_match else None
    techstack = _extract_techstack(transcript)
    question_type = _extract_type(transcript)
    amount = _extract_amount(transcript)

    if all(value is None for value in (role, level, techstack, question_type, amount)):
        logger.info("No interview parameters found in transcript (%d chars)", len(transcript))
        return None

    info = ExtractedInterviewInfo(
        role=role or DEFAULT_ROLE,
        level=level or DEFAULT_LEVEL,
        techstack=techstack or DEFAULT_TECHSTACK,
        type=question_type or DEFAULT_TYPE,
        amount=amount if amount is not None else DEFAULT_AMOUNT,
    )
    logger.info(
        "Extracted interview info: role=%s level=%s techstack=%s type=%s amount=%d",
        info.role,
        info.level,
        info.techstack,
        info.type,
        info.amount,
    )
    return info
