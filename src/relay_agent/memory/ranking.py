"""Sentence-section ranking over memory documents."""

from __future__ import annotations

import math
import re
from collections import Counter
from dataclasses import dataclass

from rapidfuzz import fuzz

from relay_agent.config import MemoryConfig

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?。！？])\s+")
_TERM_PATTERN = re.compile(r"\w+", flags=re.UNICODE)

_STOPWORDS = frozenset(
    """
    a about above after again against all am an and any are as at be because been
    before being below between both but by can could did do does doing down during
    each few for from further had has have having he her here hers herself him
    himself his how i if in into is it its itself just me more most my myself no
    nor not now of off on once only or other our ours ourselves out over own same
    she should so some such than that the their theirs them themselves then there
    these they this those through to too under until up very was we were what when
    where which while who whom why will with would you your yours yourself
    yourselves
    """.split()
)


@dataclass(slots=True)
class RankedSection:
    text: str
    similarity: float
    document_index: int


def split_sentences(text: str) -> list[str]:
    sentences: list[str] = []
    for line in text.splitlines():
        sentences.extend(part.strip() for part in _SENTENCE_SPLIT.split(line) if part.strip())
    return sentences


def split_sections(text: str, size: int) -> list[str]:
    """Group consecutive sentences into sections of `size` sentences."""
    sentences = split_sentences(text)
    return [" ".join(sentences[i : i + size]) for i in range(0, len(sentences), size)]


def tokenize(text: str) -> list[str]:
    tokens = [token.lower() for token in _TERM_PATTERN.findall(text)]
    content = [token for token in tokens if token not in _STOPWORDS]
    # A text made only of stopwords still has to match something.
    return content or tokens


class SectionIndex:
    """Term-frequency index over the sections of one document snapshot.

    Built from scratch for every search; nothing is carried between calls.

    Scoring:
    1. Each document is split into sentences and grouped into sections of
       `section_size` sentences.
    2. A text's important terms are its `important_terms` most frequent terms.
       Ties go to the term that is rarer across sections, then to the one that
       appears first.
    3. Query and section are compared with a token-set ratio over their joined
       important terms, scaled to [0, 1].
    """

    def __init__(self, documents: list[str], config: MemoryConfig | None = None) -> None:
        self.config = config or MemoryConfig()
        self.sections: list[tuple[int, str]] = [
            (doc_index, section)
            for doc_index, document in enumerate(documents)
            for section in split_sections(document, self.config.section_size)
        ]
        self.document_frequency: Counter[str] = Counter()
        self._section_terms: list[list[str]] = []
        for _, section in self.sections:
            self.document_frequency.update(set(tokenize(section)))
        for _, section in self.sections:
            self._section_terms.append(self.important_terms(section))

    @property
    def vocabulary_size(self) -> int:
        return len(self.document_frequency)

    def idf(self, term: str) -> float:
        count = len(self.sections)
        return math.log((count + 1) / (self.document_frequency.get(term, 0) + 1)) + 1.0

    def important_terms(self, text: str) -> list[str]:
        tokens = tokenize(text)
        counts = Counter(tokens)
        first_seen: dict[str, int] = {}
        for position, token in enumerate(tokens):
            first_seen.setdefault(token, position)
        ranked = sorted(
            counts,
            key=lambda term: (-counts[term], -self.idf(term), first_seen[term]),
        )
        return ranked[: self.config.important_terms]

    def rank(self, query: str) -> list[RankedSection]:
        query_terms = " ".join(self.important_terms(query))
        ranked = [
            RankedSection(
                text=section,
                similarity=_similarity(query_terms, " ".join(terms)),
                document_index=doc_index,
            )
            for (doc_index, section), terms in zip(self.sections, self._section_terms, strict=True)
        ]
        return sorted(ranked, key=lambda item: item.similarity, reverse=True)

    def search(self, query: str) -> list[RankedSection]:
        """Best sections at or above the similarity floor, at most `top_sections`."""
        hits = [item for item in self.rank(query) if item.similarity >= self.config.min_similarity]
        return hits[: self.config.top_sections]


def _similarity(query_terms: str, section_terms: str) -> float:
    if not query_terms or not section_terms:
        return 0.0
    return fuzz.token_set_ratio(query_terms, section_terms) / 100.0
