"""Candidate scoring - simple, explainable token/substring relevance.

Every query token contributes independently, so a candidate matching
two tokens outranks one matching a single token partially:

    - Operator symbol token (">", "<=", "+") found in the label: +25
    - Label or type id starts with the token: +10
    - Label contains the token: +5
    - Category contains the token: +12
    - Label or category equals the token: +20 (+30 for user data)

Flat bonuses, once per candidate (a candidate matching no token of a
non-empty query still scores 0):
    - User data (Variables, Lists, My Blocks): +3
    - Insertable block: +2

Usage:
    from blockpalette.engine.scoring import tokenize, score_candidate

    tokens = tokenize("set score")
    score = score_candidate(candidate, tokens)
"""

from dataclasses import dataclass
from typing import Sequence

from blockpalette.engine.models import (
    LISTS_CATEGORY,
    PROCEDURES_CATEGORY,
    VARIABLES_CATEGORY,
    Candidate,
    CandidateKind,
)

DYNAMIC_CATEGORIES = frozenset(
    name.lower() for name in (VARIABLES_CATEGORY, LISTS_CATEGORY, PROCEDURES_CATEGORY)
)

OPERATOR_SYMBOLS = frozenset("><=+-*/")


@dataclass(frozen=True)
class ScoreWeights:
    """Per-token and flat scoring weights."""

    operator_symbol: int = 25
    prefix: int = 10
    substring: int = 5
    category: int = 12
    exact: int = 20
    exact_dynamic: int = 30
    dynamic_bonus: int = 3
    insert_bonus: int = 2


DEFAULT_WEIGHTS = ScoreWeights()


def tokenize(query: str) -> list[str]:
    """Lowercase and split a query on whitespace, dropping empty tokens."""
    return (query or "").lower().split()


def is_dynamic(candidate: Candidate) -> bool:
    """Whether a candidate belongs to one of the user-data categories."""
    return (candidate.category or "").lower() in DYNAMIC_CATEGORIES


def _is_operator_token(token: str) -> bool:
    return len(token) <= 2 and any(ch in OPERATOR_SYMBOLS for ch in token)


def flat_bonus(candidate: Candidate, weights: ScoreWeights = DEFAULT_WEIGHTS) -> int:
    """Bonuses that do not depend on the query: user data, then blocks."""
    bonus = 0
    if is_dynamic(candidate):
        bonus += weights.dynamic_bonus
    if candidate.kind == CandidateKind.INSERT:
        bonus += weights.insert_bonus
    return bonus


def score_candidate(
    candidate: Candidate,
    tokens: Sequence[str],
    weights: ScoreWeights = DEFAULT_WEIGHTS,
) -> int:
    """Score a candidate against query tokens.

    With no tokens the score is just the flat bonus, which orders the
    non-recent remainder of an empty-query evaluation.

    Args:
        candidate: Candidate to score
        tokens: Lowercased query tokens (see tokenize)
        weights: Scoring weights

    Returns:
        Relevance score; 0 means the candidate matched none of the tokens.
        With no tokens, the flat bonus alone
    """
    if not tokens:
        return flat_bonus(candidate, weights)

    text = (candidate.text or "").lower()
    category = (candidate.category or "").lower()
    type_id = (candidate.type_id or candidate.id or "").lower()
    dynamic = category in DYNAMIC_CATEGORIES

    score = 0
    for token in tokens:
        if _is_operator_token(token) and token in text:
            score += weights.operator_symbol
        if text.startswith(token) or type_id.startswith(token):
            score += weights.prefix
        if token in text:
            score += weights.substring
        if token in category:
            score += weights.category
        if text == token or category == token:
            score += weights.exact_dynamic if dynamic else weights.exact

    if score == 0:
        return 0
    return score + flat_bonus(candidate, weights)
