from __future__ import annotations

import re
from typing import Iterable, List, Set

WORD_PATTERN = re.compile(r"[^\W_]+(?:['’][^\W_]+)*")
APOSTROPHES = str.maketrans({"’": "'"})


def tokenize_words(text: str) -> List[str]:
    if not text:
        return []
    return [match.group(0).translate(APOSTROPHES).casefold() for match in WORD_PATTERN.finditer(text)]


def build_vocabulary(texts: Iterable[str]) -> Set[str]:
    vocabulary: Set[str] = set()
    for text in texts:
        vocabulary.update(tokenize_words(text))
    return vocabulary


def find_unknown_words(text: str, reference: str) -> List[str]:
    """Words of ``text`` missing from ``reference``, in order of first appearance."""
    vocabulary = build_vocabulary([reference])
    unknown: List[str] = []
    seen: Set[str] = set()
    for word in tokenize_words(text):
        if word in vocabulary or word in seen:
            continue
        seen.add(word)
        unknown.append(word)
    return unknown
