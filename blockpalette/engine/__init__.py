"""Engine package - Candidate discovery, labels, scoring, ranking.

Modules:
    - models: Candidate, BlockTemplate, DynamicEntity, HistoryEntry
    - labels: Block label and category name resolution
    - catalog: Candidate universe from the live workspace
    - scoring: Token/substring relevance scoring
    - palette: PaletteEngine, the evaluate/record_execution entry point
"""

from blockpalette.engine.models import Candidate, CandidateKind, HistoryEntry
from blockpalette.engine.palette import PaletteEngine, create_engine

__all__ = [
    "Candidate",
    "CandidateKind",
    "HistoryEntry",
    "PaletteEngine",
    "create_engine",
]
