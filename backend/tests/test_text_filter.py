"""
Tests for the online output filter.

The filter is a heuristic; these tests pin the cases it is meant to
handle and the text it must leave alone.
"""

import pytest

from newsdebate.config import Settings
from newsdebate.services.streaming.text_filter import OnlineTextFilter, build_text_filter


@pytest.mark.parametrize(
    "fragment, expected",
    [
        ("[Reuters](https://reuters.com/x) reported", "Reuters reported"),
        ("see https://example.com/story today", "see today"),
        ("visit www.example.org for more", "visit for more"),
        ("according to bbc.co.uk, the vote", "according to, the vote"),
        ("Sources: reuters.com, apnews.com", ""),
        ("the vote ()", "the vote"),
        ("see(https://x.com/a)", "see"),
        ("three points:- Jobs", "three points:\n- Jobs"),
    ],
)
def test_filter_strips_links(fragment, expected):
    assert OnlineTextFilter()(fragment) == expected


@pytest.mark.parametrize(
    "fragment",
    [
        "The council voted 7-2 on Tuesday.",
        "A well-known shop - the bakery - objected.",
        "- first point\n- second point",
        "Costs rose by 1.2 million euros.",
        "",
    ],
)
def test_filter_leaves_plain_text_alone(fragment):
    assert OnlineTextFilter()(fragment) == fragment


def test_list_split_can_be_disabled():
    text_filter = OnlineTextFilter(split_glued_list_items=False)
    assert text_filter("three points:- Jobs") == "three points:- Jobs"


def test_sources_line_removed_inside_multiline_fragment():
    fragment = "Shops will lose customers.\nSources: apnews.com\nThe vote stands."
    assert OnlineTextFilter()(fragment) == "Shops will lose customers.\n\nThe vote stands."


def test_build_text_filter_follows_settings():
    assert build_text_filter(Settings(_env_file=None, filter_online_output=False)) is None

    text_filter = build_text_filter(Settings(_env_file=None, split_glued_list_items=False))
    assert isinstance(text_filter, OnlineTextFilter)
    assert text_filter.split_glued_list_items is False
