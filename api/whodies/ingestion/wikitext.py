"""Deterministic parser for List of Deaths victim lists.

The section is a bulleted list of the form::

    * <u>''Character''</u> - Description of death
    ** optional detail lines

Each top-level bullet becomes one death. This is far more reliable than
free-text extraction, so the rest of the pipeline prefers its output.
"""

from __future__ import annotations

import re

from whodies.ingestion.base import NOT_APPLICABLE, UNKNOWN, ExtractedDeath

SEPARATOR = " - "
AMBIGUITY_MARKERS = ("off-screen", "mentioned", "uncertain", "debatable", "unknown if")
DEATH_VERBS = (
    "killed",
    "eaten",
    "shot",
    "stabbed",
    "murdered",
    "bitten",
    "dragged",
    "torn apart",
    "blown up",
    "attacked",
    "beheaded",
    "strangled",
    "crushed",
    "drowned",
    "poisoned",
    "mauled",
    "devoured",
    "impaled",
    "decapitated",
)

_BULLET_PREFIX = re.compile(r"^\*+\s*")
_UNDERLINE = re.compile(r"</?u>", re.IGNORECASE)
_QUOTE_MARKUP = re.compile(r"'{2,3}")
_WIKILINK = re.compile(r"\[\[([^\]|]+)\|?([^\]]*)\]\]")
_HTML_TAG = re.compile(r"<[^>]+>")
_KILLER = re.compile(
    r"(?:" + "|".join(DEATH_VERBS) + r")\b.*?\b(?:by|at the hands of)\s+([^,.;(]+)",
    re.IGNORECASE,
)
_KILLER_NOISE = (
    re.compile(r"\s+off-screen.*$", re.IGNORECASE),
    re.compile(r"\s+with\s+.+$", re.IGNORECASE),
    re.compile(r"\s+in\s+\d{4}.*$", re.IGNORECASE),
)


def strip_markup(text: str) -> str:
    """Remove bullet markers, bold/italic/underline, link brackets, and tags."""
    text = _BULLET_PREFIX.sub("", text)
    text = _UNDERLINE.sub("", text)
    text = _QUOTE_MARKUP.sub("", text)
    text = _WIKILINK.sub(lambda m: m.group(2) or m.group(1), text)
    text = _HTML_TAG.sub("", text)
    return text.strip()


def extract_killer(description: str) -> str:
    """Agent named after a death verb ("eaten by the shark"), else N/A."""
    match = _KILLER.search(description)
    if not match:
        return NOT_APPLICABLE
    killer = match.group(1).strip()
    for pattern in _KILLER_NOISE:
        killer = pattern.sub("", killer)
    return killer.strip() or NOT_APPLICABLE


def is_ambiguous(description: str) -> bool:
    lowered = description.lower()
    return any(marker in lowered for marker in AMBIGUITY_MARKERS)


def _is_top_level(line: str) -> bool:
    stripped = line.strip()
    return stripped.startswith("*") and not stripped.startswith("**")


def parse_victims(wikitext: str) -> list[ExtractedDeath]:
    lines = wikitext.split("\n")
    deaths: list[ExtractedDeath] = []
    for index, raw in enumerate(lines):
        if not _is_top_level(raw):
            continue
        line = strip_markup(raw.strip())
        if len(line) < 5 or SEPARATOR not in line:
            continue
        character, description = (part.strip() for part in line.split(SEPARATOR, 1))
        if not character or not description:
            continue

        details: list[str] = []
        for following in lines[index + 1:]:
            stripped = following.strip()
            if not stripped.startswith("**"):
                break
            detail = strip_markup(stripped)
            if detail:
                details.append(detail)

        deaths.append(
            ExtractedDeath(
                character=character,
                time_of_death=UNKNOWN,
                cause=description,
                killed_by=extract_killer(description),
                context="; ".join(details),
                is_ambiguous=is_ambiguous(description),
            )
        )
    return deaths
