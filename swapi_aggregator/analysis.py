"""Word-frequency and name-mention statistics over a text corpus."""

import re
from collections import Counter
from typing import Dict, Iterable, List

from .schemas import CorpusAnalysis, WordCount

_WORD = re.compile(r"\b\w+\b")


def word_counts(corpus: str) -> List[WordCount]:
    """Count ``\\b\\w+\\b`` tokens of an already lower-cased corpus."""
    counts = Counter(_WORD.findall(corpus))
    return [WordCount(word=w, count=n) for w, n in counts.items()]


def mention_tally(corpus: str, names: Iterable[str]) -> Dict[str, int]:
    """Whole-word, case-insensitive occurrences per name; zero counts dropped.

    Keys keep the caller's spelling and first-seen order.
    """
    tally: Dict[str, int] = {}
    for name in names:
        if not name or name in tally:
            continue
        pattern = re.compile(rf"\b{re.escape(name.lower())}\b")
        n = len(pattern.findall(corpus))
        if n > 0:
            tally[name] = n
    return tally


def top_mentioned(tally: Dict[str, int]) -> List[str]:
    """Every name sharing the highest count (ties kept); [] for an empty tally."""
    if not tally:
        return []
    best = max(tally.values())
    return [name for name, n in tally.items() if n == best]


def analyze(texts: Iterable[str], entity_names: Iterable[str]) -> CorpusAnalysis:
    """Analyze ``texts`` against a roster of ``entity_names``.

    Example:
        >>> r = analyze(["Luke faces Vader. Vader is Luke's father."],
        ...             ["Luke", "Vader", "Leia"])
        >>> r.top_mentioned
        ['Luke', 'Vader']
    """
    corpus = " ".join(t for t in texts if t).lower()
    tally = mention_tally(corpus, entity_names)
    return CorpusAnalysis(
        word_counts=word_counts(corpus),
        top_mentioned=top_mentioned(tally),
    )
