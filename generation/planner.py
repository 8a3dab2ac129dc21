"""
Batching Planner - Group documents into size-bounded batches

Heuristic, not optimal bin packing: largest documents first, oversized
documents alone, everything else packed up to the byte limit with at most
MAX_BATCH_DOCUMENTS per batch. Deterministic for a given input order.
"""

from typing import List, Sequence

from config import get_logger
from generation.documents import SourceDocument

logger = get_logger(__name__).bind(component="planner")

MAX_BATCH_DOCUMENTS = 3

Batch = List[SourceDocument]


def plan_batches(
    documents: Sequence[SourceDocument],
    max_batch_bytes: int,
    max_batch_documents: int = MAX_BATCH_DOCUMENTS,
) -> List[Batch]:
    """Partition documents into batches

    Args:
        documents: Documents to group (not modified)
        max_batch_bytes: Combined size a shared batch should not exceed
        max_batch_documents: Maximum documents in one batch

    Returns:
        List of batches; empty input gives an empty list
    """
    # sorted() is stable, so equal sizes keep their input order
    ordered = sorted(documents, key=lambda doc: doc.size_bytes, reverse=True)

    batches: List[Batch] = []
    current: Batch = []
    current_size = 0

    for doc in ordered:
        # Too big to share a batch usefully
        if doc.size_bytes > max_batch_bytes / 2:
            batches.append([doc])
            continue

        if current and (
            current_size + doc.size_bytes > max_batch_bytes
            or len(current) >= max_batch_documents
        ):
            batches.append(current)
            current = []
            current_size = 0

        current.append(doc)
        current_size += doc.size_bytes

    if current:
        batches.append(current)

    logger.debug(
        "planned batches",
        documents=len(ordered),
        batches=len(batches),
        max_batch_bytes=max_batch_bytes
    )
    return batches
