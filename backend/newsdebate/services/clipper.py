"""
Sentence Clipper.

Generation calls are capped by max_tokens, so the text often stops
mid-sentence ("...the council will vote on the"). This trims the output
back to the last complete sentence.

    clip_to_last_sentence("Hello world. Extra frag")  → "Hello world."
    clip_to_last_sentence("no punctuation here")       → "no punctuation here"

Used by every non-streaming path (summaries, batch debates). Live streams
are not clipped: the client has already seen those tokens.
"""

SENTENCE_TERMINATORS = (".", "!", "?")


def clip_to_last_sentence(text: str) -> str:
    """Cut `text` after its rightmost '.', '!' or '?'. Never adds characters."""
    trimmed = text.strip()
    last_index = max(trimmed.rfind(mark) for mark in SENTENCE_TERMINATORS)
    if last_index == -1:
        return trimmed
    return trimmed[: last_index + 1].strip()
