"""connections -- semantic connection detection between content items.

Quick start::

    from connections import ConnectionDetector, InMemoryVectorStore, Item

    async def main(items: list[Item]):
        store = InMemoryVectorStore()
        store.add_many(items)
        detector = ConnectionDetector(store)

        result = await detector.detect_connections(items[0])
        for conn in result.connections:
            print(conn.target_item.id, conn.overall_score, conn.reason)

For lower-level access, import from submodules::

    from connections.criteria import cosine_similarity, sentiment_alignment
    from connections.scoring import RelationshipScorer, ConnectionResult
    from connections.stats import summarize, ConnectionStats
"""

from __future__ import annotations

__version__ = "0.1.0"

# Public API exports
from connections.config import ScoringWeights
from connections.detector import ConnectionDetector, DetectionOptions, ItemConnectionsResult
from connections.errors import ConnectionsError, DimensionMismatchError
from connections.items import Item, PRIORITY_LEVELS, SENTIMENT_TYPES
from connections.scoring import ConnectionResult, Relationship, RelationshipScorer, ScoringCriteria
from connections.vector_store import InMemoryVectorStore, QdrantVectorStore, SearchHit, VectorSearch

__all__ = [
    "__version__",
    "ConnectionDetector",
    "DetectionOptions",
    "ItemConnectionsResult",
    "ConnectionResult",
    "Relationship",
    "RelationshipScorer",
    "ScoringCriteria",
    "ScoringWeights",
    "Item",
    "PRIORITY_LEVELS",
    "SENTIMENT_TYPES",
    "InMemoryVectorStore",
    "QdrantVectorStore",
    "SearchHit",
    "VectorSearch",
    "ConnectionsError",
    "DimensionMismatchError",
]
