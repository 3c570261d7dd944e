"""
Online Output Filter.

WHAT THIS DOES:
Models called with OpenRouter's ":online" suffix search the web and like to
paste links and source lists into their arguments. The debate UI renders
plain text, so we strip that noise out of each streamed fragment:

    "[Reuters](https://reuters.com/x) reported"  → "Reuters reported"
    "see https://example.com/story today"        → "see today"
    "according to bbc.co.uk, the vote"            → "according to, the vote"
    "Sources: reuters.com, apnews.com"            → ""
    "the vote ()"                                 → "the vote"
    "three points:- Jobs"                         → "three points:\n- Jobs"

THIS IS A HEURISTIC, NOT A PARSER:
- It runs per incoming fragment, not per logical line. A URL split across
  two fragments ("https://exa" + "mple.com") can slip through.
- The list-marker rule can misfire on odd hyphenation. It can be switched
  off with SPLIT_GLUED_LIST_ITEMS=false.
- Only applied to online models, and the whole filter can be disabled
  (FILTER_ONLINE_OUTPUT=false).
"""

import re
from typing import Callable, Optional

from newsdebate.config import Settings

TextFilter = Callable[[str], str]

# [label](url) → label
MARKDOWN_LINK = re.compile(r"\[([^\]]*)\]\(([^)\s]*)\)")

# A whole "Sources: ..." line
SOURCES_LINE = re.compile(r"^[ \t]*sources\s*:.*$", re.IGNORECASE | re.MULTILINE)

# http(s)://... or www.... up to whitespace or a closing bracket.
# Eats one leading space so "see https://x today" doesn't leave a double space.
BARE_URL = re.compile(r"[ \t]?(?:https?://|www\.)[^\s)\]]+", re.IGNORECASE)

# example.com, bbc.co.uk/news, ... (common TLDs only)
BARE_DOMAIN = re.compile(
    r"[ \t]?\b(?:[a-z0-9-]+\.)+(?:com|org|net|gov|edu|io|co|uk|us|info|news|int)\b(?:/[^\s)\]]*)?",
    re.IGNORECASE,
)

# "()" or "[]" left behind once the URL inside is gone
EMPTY_BRACKETS = re.compile(r"[ \t]*(?:\(\s*\)|\[\s*\])")

# "word.- item" → "word.\n- item" (hyphen glued to the previous word, space after)
GLUED_LIST_MARKER = re.compile(r"(?<=[^\s-])- (?=\S)")


class OnlineTextFilter:
    """Callable filter applied to each token fragment of an online model."""

    def __init__(self, split_glued_list_items: bool = True):
        self.split_glued_list_items = split_glued_list_items

    def __call__(self, text: str) -> str:
        if not text:
            return text
        text = MARKDOWN_LINK.sub(r"\1", text)
        text = SOURCES_LINE.sub("", text)
        text = BARE_URL.sub("", text)
        text = BARE_DOMAIN.sub("", text)
        text = EMPTY_BRACKETS.sub("", text)
        if self.split_glued_list_items:
            text = GLUED_LIST_MARKER.sub("\n- ", text)
        return text


def build_text_filter(settings: Settings) -> Optional[OnlineTextFilter]:
    """Return the configured filter, or None when filtering is disabled."""
    if not settings.filter_online_output:
        return None
    return OnlineTextFilter(split_glued_list_items=settings.split_glued_list_items)
