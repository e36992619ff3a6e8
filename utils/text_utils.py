"""
Story prompt checks and summary-derived titles
"""

import re
from typing import List

STORY_PROMPT_PATTERN = re.compile(r"tell me a story|write a story|create a story", re.IGNORECASE)

TITLE_STOPWORDS = frozenset(["the", "a", "an", "is", "was", "and", "of", "in", "on"])
TITLE_MAX_WORDS = 3


def is_story_prompt(text: str) -> bool:
    if not text:
        return False
    return STORY_PROMPT_PATTERN.search(text) is not None


def derive_title(summary: str) -> str:
    """First three non-stopwords of the summary, space separated.

    Heuristic only: returns an empty string when the summary is nothing but stopwords.
    """
    words = (summary or "").split()
    kept = [word for word in words if word.lower() not in TITLE_STOPWORDS]
    return " ".join(kept[:TITLE_MAX_WORDS])


def split_paragraphs(text: str) -> List[str]:
    """Blank-line separated segments, empty ones dropped"""
    return [p for p in re.split(r"\n\s*\n", text or "") if p.strip()]
