"""
Column-to-field mapping suggestions based on name similarity.

Suggestions are advisory: they pre-fill the mapping form shown after upload
and carry no weight once the operator submits a mapping.
"""
import re
from dataclasses import dataclass
from typing import Iterable, List, Sequence

from rapidfuzz.distance import Levenshtein

DEFAULT_MIN_CONFIDENCE = 0.3

TOKEN_WEIGHT = 0.6
EDIT_WEIGHT = 0.4

_TOKEN_SPLIT = re.compile(r"[\s_-]+")


@dataclass(frozen=True)
class SuggestedMapping:
    source_column: str
    target_field: str
    confidence: float

    def as_dict(self) -> dict:
        return {
            "source_column": self.source_column,
            "target_field": self.target_field,
            "confidence": round(self.confidence, 4),
        }


def _tokens(value: str) -> List[str]:
    return [token for token in _TOKEN_SPLIT.split(value) if token]


def _token_score(left: str, right: str) -> float:
    if left == right:
        return 1.0
    if left in right or right in left:
        return 0.8
    if len(left) >= 3 and len(right) >= 3 and left[:3] == right[:3]:
        return 0.6
    if Levenshtein.distance(left, right) <= 2:
        return 0.5
    return 0.0


def token_overlap(left: str, right: str) -> float:
    """Share of tokens that find a (partial) partner in the other string."""
    left_tokens = _tokens(left)
    right_tokens = _tokens(right)
    if not left_tokens or not right_tokens:
        return 0.0
    credit = sum(max(_token_score(a, b) for b in right_tokens) for a in left_tokens)
    return min(credit / max(len(left_tokens), len(right_tokens)), 1.0)


def similarity(first: str, second: str) -> float:
    """
    Score how alike two column/field names are, from 0.0 to 1.0.

    Identical names (ignoring case and surrounding whitespace) score 1.0 and
    names contained in one another score 0.9. Everything else blends token
    overlap with the normalized Levenshtein similarity of the whole strings.
    """
    left = (first or "").strip().lower()
    right = (second or "").strip().lower()
    if not left or not right:
        return 0.0
    if left == right:
        return 1.0
    if left in right or right in left:
        return 0.9
    return token_overlap(left, right) * TOKEN_WEIGHT + Levenshtein.normalized_similarity(left, right) * EDIT_WEIGHT


def suggest_field_mappings(
    columns: Sequence[str],
    fields: Iterable,
    min_confidence: float = DEFAULT_MIN_CONFIDENCE,
) -> List[SuggestedMapping]:
    """
    Propose a column for as many target fields as possible.

    Every column is scored against each field's label and key, keeping the
    better score. Pairs under ``min_confidence`` are dropped and the rest are
    accepted greedily from the highest score down, skipping any pair whose
    column or field is already taken. Equal scores keep column order, then
    field order.

    Args:
        columns: Header names from the uploaded file
        fields: Target field definitions (objects with ``key`` and ``label``)
        min_confidence: Lowest score worth suggesting

    Returns:
        Accepted suggestions, best first
    """
    field_list = list(fields)
    scored = []
    for column in columns:
        for target in field_list:
            confidence = max(similarity(column, target.label), similarity(column, target.key.replace("_", " ")))
            if confidence >= min_confidence:
                scored.append((column, target.key, confidence))

    scored.sort(key=lambda item: item[2], reverse=True)

    used_columns = set()
    used_fields = set()
    suggestions: List[SuggestedMapping] = []
    for column, field_key, confidence in scored:
        if column in used_columns or field_key in used_fields:
            continue
        suggestions.append(SuggestedMapping(column, field_key, confidence))
        used_columns.add(column)
        used_fields.add(field_key)
    return suggestions
