"""
Content normalization for generated research documents.

Providers tend to wrap their findings in boilerplate: repeated headers with their
own name, conversational preambles, echoed clarifying questions, methodology advice
and markdown emphasis that renders badly in PDF and email. ``normalize`` removes all
of it and prefixes the cleaned body with a single label heading.

The transforms below are applied as one pass, and passes are repeated until the
text stops changing (bounded by ``max_passes``) so that the result is a fixed point:
normalizing an already normalized document returns it unchanged.
"""

import logging
import re
from typing import Callable, Iterable, List, Optional

from research_chat.config import config

logger = logging.getLogger(__name__)

# Headings that never carry findings
_NAMED_HEADING = re.compile(
    r"^#{1,6}[ \t]*(?:Research[ \t]*Page|Comparative[ \t]*Analysis)\b[^\n]*(?:\n|\Z)",
    re.IGNORECASE | re.MULTILINE,
)

_PREAMBLES = [
    re.compile(
        r"\A\s*I['’]d like to help you[\s\S]{0,2000}?comprehensive research(?: plan)? for you\.?\s*",
        re.IGNORECASE,
    ),
    re.compile(
        r"\A\s*I['’]d like to help you[\s\S]{0,2000}?one by one[^.\n]*\.?\s*",
        re.IGNORECASE,
    ),
    re.compile(
        r"\A\s*Here(?: is|['’]s| are) (?:your|the) (?:comprehensive |detailed )?research\b[^\n]*(?:\n|\Z)\s*",
        re.IGNORECASE,
    ),
]

_HEADING_LINE = re.compile(r"^(#{1,6})[ \t]+\S|^(#{1,6})\S")
_QUESTION_SECTION = re.compile(r"^(#{1,6})[ \t]*Clarifying[ \t]+Questions\b", re.IGNORECASE)
_METHODOLOGY_SECTION = re.compile(
    r"^(#{1,6})[ \t]*(?:Proposed[ \t]+Methodology|Research[ \t]+Methodology|Suggested[ \t]+Research[ \t]+Methods?)\b",
    re.IGNORECASE,
)

_SCAFFOLDING = [
    re.compile(r"To provide you with[^\n]*?I have[^\n]*?questions:?[ \t]*", re.IGNORECASE),
    re.compile(r"Please answer[^\n]*?questions[^\n]*", re.IGNORECASE),
]
_NUMBERED_QUESTION = re.compile(
    r"^[ \t]*\d+[.)][ \t]+(?:Which|What|How|Are|Do|Does|Is|Can|Should|Would|Will)\b[^\n]*\?[ \t]*(?:\n|\Z)",
    re.MULTILINE,
)

_STAR_BULLET = re.compile(r"^([ \t]*)[*+][ \t]+", re.MULTILINE)
_STAR_SPAN = re.compile(r"\*{1,3}([^*\n]+?)\*{1,3}")
_UNDERSCORE_SPAN = re.compile(r"(?<!\w)(_{1,2})(?=\S)([^_\n]+?)(?<=\S)\1(?!\w)")
_STRAY_STARS = re.compile(r"\*+")

_LINK = re.compile(r"\[([^\]\n]+)\]\(([^)\s]+)\)")
_NUMBERED_ITEM = re.compile(r"^[ \t]*\d+[.)][ \t]+", re.MULTILINE)
_TRAILING_SPACE = re.compile(r"[ \t]+$", re.MULTILINE)
_BLANK_RUNS = re.compile(r"\n{3,}")


def strip_emphasis(text: str) -> str:
    """Remove bold/italic markup, turning ``*``/``+`` bullets into ``-`` bullets first."""
    if not text:
        return ""
    text = _STAR_BULLET.sub(r"\1- ", text)
    text = _STAR_SPAN.sub(r"\1", text)
    text = _UNDERSCORE_SPAN.sub(r"\2", text)
    return _STRAY_STARS.sub("", text)


def _heading_level(line: str) -> int:
    match = _HEADING_LINE.match(line)
    if not match:
        return 0
    return len(match.group(1) or match.group(2))


def _drop_sections(text: str) -> str:
    """Drop clarifying-question and methodology sections.

    A section runs until the next heading of the same or a higher level. A
    clarifying-questions section also ends at the first paragraph that is not
    itself a question or list item, since providers often follow it with prose.
    """
    kept: List[str] = []
    skip_level = 0
    questions_only = False
    previous_blank = False

    for line in text.split("\n"):
        level = _heading_level(line)
        if skip_level:
            ends_section = level and level <= skip_level
            if not ends_section and questions_only and previous_blank:
                stripped = line.strip()
                ends_section = bool(stripped) and stripped[0].isupper() and not stripped.endswith("?")
            if not ends_section:
                previous_blank = not line.strip()
                continue
            skip_level = 0

        question_match = _QUESTION_SECTION.match(line)
        method_match = _METHODOLOGY_SECTION.match(line)
        if question_match or method_match:
            skip_level = len((question_match or method_match).group(1))
            questions_only = bool(question_match)
            previous_blank = False
            continue

        kept.append(line)

    return "\n".join(kept)


def _drop_preambles(text: str) -> str:
    """Strip stacked preambles until none is left at the start of the text."""
    while True:
        before = text
        for pattern in _PREAMBLES:
            text = pattern.sub("", text, count=1)
        if text == before:
            return text


def _drop_scaffolding(text: str) -> str:
    for pattern in _SCAFFOLDING:
        text = pattern.sub("", text)
    return _NUMBERED_QUESTION.sub("", text)


def _rewrite_links(text: str) -> str:
    return _LINK.sub(r"\1 (\2)", text)


def _tidy(text: str) -> str:
    text = _NUMBERED_ITEM.sub("- ", text)
    text = _TRAILING_SPACE.sub("", text)
    text = _BLANK_RUNS.sub("\n\n", text)
    return text.strip()


def _own_heading_pattern(aliases: Iterable[str]) -> Optional[re.Pattern]:
    names = sorted({a.strip() for a in aliases if a and a.strip()}, key=len, reverse=True)
    if not names:
        return None
    alternatives = "|".join(re.escape(name) for name in names)
    return re.compile(
        rf"^#{{1,6}}[ \t]*(?:{alternatives})(?!\w)[^\n]*(?:\n|\Z)",
        re.IGNORECASE | re.MULTILINE,
    )


def _build_pass(own_heading: Optional[re.Pattern]) -> List[Callable[[str], str]]:
    transforms: List[Callable[[str], str]] = []
    if own_heading is not None:
        transforms.append(lambda text: own_heading.sub("", text))
    transforms.extend([
        lambda text: _NAMED_HEADING.sub("", text),
        _drop_preambles,
        _drop_sections,
        _drop_scaffolding,
        strip_emphasis,
        _rewrite_links,
        _tidy,
    ])
    return transforms


def normalize(
    raw_text: Optional[str],
    provider_label: str,
    aliases: Optional[Iterable[str]] = None,
    max_passes: Optional[int] = None,
) -> str:
    """
    Clean a generated document and label it with its provider.

    Args:
        raw_text: Text as returned by the provider.
        provider_label: Human readable provider name used in the output heading.
        aliases: Other names the provider uses for itself in headings.
        max_passes: Upper bound on transform passes; defaults to configuration.

    Returns:
        ``"# <label> Research\\n\\n<body>"``, or an empty string when nothing
        substantive remains.
    """
    if not raw_text or not isinstance(raw_text, str):
        return ""

    label = strip_emphasis(provider_label or "").strip() or "Provider"
    names = [label] + [strip_emphasis(a) for a in (aliases or [])]
    transforms = _build_pass(_own_heading_pattern(names))
    limit = max_passes if max_passes is not None else config.normalizer_max_passes

    text = raw_text.replace("\r\n", "\n")
    for _ in range(max(1, limit)):
        before = text
        for transform in transforms:
            text = transform(text)
        if text == before:
            break
    else:
        logger.warning(f"Normalization of {label} output did not settle after {limit} passes")

    if not text:
        return ""
    return f"# {label} Research\n\n{text}"
