"""PlcCommentSearchService: rank device comments against a free-form question."""

import logging
import re
import unicodedata
from dataclasses import dataclass

from rapidfuzz.distance import JaroWinkler

from .store import PlcDataStore
from .types import CommentSearchResult

logger = logging.getLogger(__name__)

_DEVICE_PATTERN = re.compile(r"\b([dwmxyct]\d+)\b", re.IGNORECASE | re.ASCII)
_SPLIT_PATTERN = re.compile(
    r"[ \t\r\n,、，。．.\-_=+!?！？:：;；()（）\"'「」『』［］\\/\[\]{}<>]+"
)

MAX_RESULTS_LIMIT = 20
FUZZY_THRESHOLD = 0.75
FUZZY_WEIGHT = 2.5
DEVICE_MATCH_BONUS = 5.0


@dataclass(frozen=True)
class _Token:
    original: str
    normalized: str
    is_ascii: bool


def normalize_text(text: str | None) -> str:
    """NFKC-normalize (half-width kana become full-width) and upper-case."""
    if not text or not text.strip():
        return ""
    return unicodedata.normalize("NFKC", text).upper()


def _is_hiragana(ch: str) -> bool:
    return "\u3040" <= ch <= "\u309f"


def split_at_hiragana(text: str) -> list[str]:
    """
    Treat hiragana runs as separators between content chunks.

    A rough stand-in for word segmentation: particles and okurigana are
    mostly hiragana while the nouns worth matching are kanji or katakana.
    """
    chunks: list[str] = []
    buf: list[str] = []
    for ch in text:
        if _is_hiragana(ch):
            if buf:
                chunks.append("".join(buf))
                buf = []
            continue
        buf.append(ch)
    if buf:
        chunks.append("".join(buf))
    return chunks


def _extract_tokens(text: str) -> list[_Token]:
    tokens: list[_Token] = []
    seen: set[str] = set()
    for part in _SPLIT_PATTERN.split(text):
        trimmed = part.strip()
        if not trimmed:
            continue
        normalized = normalize_text(trimmed)
        if not normalized:
            continue
        is_ascii = trimmed.isascii()
        if is_ascii and len(normalized) < 2:
            continue
        if normalized not in seen:
            seen.add(normalized)
            tokens.append(_Token(trimmed, normalized, is_ascii))
        if is_ascii:
            continue
        for segment in split_at_hiragana(trimmed):
            seg_normalized = normalize_text(segment)
            if len(seg_normalized) < 2 or seg_normalized in seen:
                continue
            seen.add(seg_normalized)
            tokens.append(_Token(segment, seg_normalized, False))
    return tokens


def _extract_device_tokens(text: str) -> list[_Token]:
    return [
        _Token(m.group(1), normalize_text(m.group(1)), True)
        for m in _DEVICE_PATTERN.finditer(text)
    ]


class PlcCommentSearchService:
    """Scores every stored comment against a question; never mutates the store."""

    def __init__(self, store: PlcDataStore) -> None:
        if store is None:
            raise ValueError("store is required")
        self._store = store

    def search(self, question: str | None, max_results: int = 5) -> list[CommentSearchResult]:
        if not question or not question.strip():
            return []

        max_results = max(1, min(max_results, MAX_RESULTS_LIMIT))
        stripped = question.strip()
        normalized_question = normalize_text(stripped)
        tokens = _extract_tokens(question)
        if not tokens and normalized_question:
            tokens.append(_Token(stripped, normalized_question, stripped.isascii()))
        device_tokens = _extract_device_tokens(question)

        results: list[CommentSearchResult] = []
        for device, comment in self._store.comments.items():
            normalized_comment = normalize_text(comment)
            if not normalized_comment:
                continue

            score = 0.0
            matched: dict[str, None] = {}

            if normalized_question and normalized_question in normalized_comment:
                score += max(2, len(tokens))
                matched[stripped] = None

            for index, token in enumerate(tokens):
                if token.normalized in normalized_comment:
                    priority = max(1, len(tokens) - index)
                    score += (1.0 if token.is_ascii else 1.5) + priority * 0.5
                    matched[token.original] = None

            fuzzy_score, fuzzy_term = self._fuzzy_score(normalized_comment, normalized_question, stripped, tokens)
            if fuzzy_score > 0:
                score += FUZZY_WEIGHT * fuzzy_score
                if fuzzy_term:
                    matched[fuzzy_term] = None

            normalized_device = normalize_text(device)
            for device_token in device_tokens:
                if normalized_device and normalized_device == device_token.normalized:
                    score += DEVICE_MATCH_BONUS
                    matched[device_token.original] = None

            if score <= 0:
                continue
            results.append(CommentSearchResult(device, comment, score, frozenset(matched)))

        results.sort(key=lambda r: (-r.score, r.device.upper()))
        logger.debug("Comment search %r: %d hits", stripped, len(results))
        return results[:max_results]

    @staticmethod
    def _fuzzy_score(
        normalized_comment: str,
        normalized_question: str,
        question: str,
        tokens: list[_Token],
    ) -> tuple[float, str | None]:
        """Best Jaro-Winkler similarity, or (0, None) when below the hard gate."""
        best = 0.0
        best_term: str | None = None
        candidates = [(normalized_question, question)] + [(t.normalized, t.original) for t in tokens]
        for candidate, term in candidates:
            if not candidate:
                continue
            similarity = JaroWinkler.similarity(normalized_comment, candidate)
            if similarity > best:
                best = similarity
                best_term = term
        if best < FUZZY_THRESHOLD:
            return 0.0, None
        return best, best_term
