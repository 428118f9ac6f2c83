"""Text normalization for report matching.

Turns free text into comparable tokens: case-folding, punctuation
stripping, short-token removal and light suffix stemming.
"""

from __future__ import annotations

import re

from .lexicon import DEFAULT_LEXICON, Lexicon

_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")


def clean_text(text: str) -> str:
    """Lower-case text, turn punctuation into spaces and collapse whitespace.

    Examples:
        >>> clean_text("  Black  iPhone-12 (cracked!) ")
        'black iphone 12 cracked'
    """
    if not text:
        return ""
    text = _PUNCTUATION_RE.sub(" ", text.lower())
    return _WHITESPACE_RE.sub(" ", text).strip()


def stem_word(word: str, lexicon: Lexicon = DEFAULT_LEXICON) -> str:
    """Strip the first matching suffix from the lexicon's list, once.

    Words of min_stem_length - 1 characters or fewer are returned unchanged.
    """
    if len(word) < lexicon.min_stem_length:
        return word

    for suffix in lexicon.stem_suffixes:
        if word.endswith(suffix):
            return word[: -len(suffix)]

    return word


def tokenize(cleaned: str, lexicon: Lexicon = DEFAULT_LEXICON) -> list[str]:
    """Split already-cleaned text into stemmed tokens."""
    return [
        stem_word(word, lexicon)
        for word in cleaned.split()
        if len(word) >= lexicon.min_token_length
    ]


def normalize(text: str, lexicon: Lexicon = DEFAULT_LEXICON) -> list[str]:
    """Clean and tokenize free text.

    Args:
        text: Raw report text
        lexicon: Word tables to use

    Returns:
        Stemmed tokens in their original order (empty for empty input)
    """
    return tokenize(clean_text(text), lexicon)


def keywords_from_tokens(tokens: list[str], lexicon: Lexicon = DEFAULT_LEXICON) -> list[str]:
    """Drop stop words (and any too-short stems) from a token list."""
    return [
        token
        for token in tokens
        if token not in lexicon.stop_words and len(token) >= lexicon.min_token_length
    ]


def extract_keywords(text: str, lexicon: Lexicon = DEFAULT_LEXICON) -> list[str]:
    """Normalize text and keep only content-bearing tokens."""
    return keywords_from_tokens(normalize(text, lexicon), lexicon)
