"""
Tests for clip_to_last_sentence.

Run with: pytest tests/test_clipper.py -v
"""

import pytest

from newsdebate.services.clipper import clip_to_last_sentence


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Hello world. Extra frag", "Hello world."),
        ("Is it? Yes! And then the", "Is it? Yes!"),
        ("Prices rose 1.2 percent and", "Prices rose 1."),
        ("no punctuation here", "no punctuation here"),
        ("  padded sentence.   ", "padded sentence."),
        ("", ""),
        ("   ", ""),
    ],
)
def test_clip_to_last_sentence(text, expected):
    assert clip_to_last_sentence(text) == expected


def test_clip_never_adds_characters():
    """The result is always a prefix of the trimmed input."""
    samples = [
        "One. Two! Three? Four",
        "- bullet one.\n- bullet two\n- bullet thr",
        "Ends cleanly.",
        "?",
    ]
    for text in samples:
        clipped = clip_to_last_sentence(text)
        assert text.strip().startswith(clipped), f"{clipped!r} is not a prefix of {text!r}"
        assert len(clipped) <= len(text.strip())


def test_clip_is_idempotent():
    text = "The council voted. Shops objected! Then the"
    once = clip_to_last_sentence(text)
    assert clip_to_last_sentence(once) == once
