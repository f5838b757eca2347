"""
Knowledge index: stores chunked documents with their vectors and answers
nearest-neighbour queries scoped to the documents bound to a channel endpoint.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple
from uuid import UUID

import numpy as np
from sqlalchemy.orm import Session

from app.models.channel_binding import ChannelBinding
from app.models.knowledge import KnowledgeChunk, KnowledgeDocument
from app.schemas.events import RetrievalMatch


def cosine_scores(vector: Sequence[float], matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity of one vector against each row of matrix. Zero vectors score 0."""
    query = np.asarray(vector, dtype="float32")
    query_norm = np.linalg.norm(query)
    row_norms = np.linalg.norm(matrix, axis=1)
    if query_norm == 0:
        return np.zeros(matrix.shape[0], dtype="float32")
    dots = matrix @ query
    return np.divide(
        dots,
        row_norms * query_norm,
        out=np.zeros_like(dots),
        where=row_norms > 0,
    )


class KnowledgeService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def add_document(
        self,
        name: str,
        chunks: List[Tuple[str, List[float]]],
        binding: Optional[ChannelBinding] = None,
    ) -> KnowledgeDocument:
        """Store a document with its (text, vector) chunks, optionally bound to an endpoint."""
        document = KnowledgeDocument(name=name)
        for position, (content, vector) in enumerate(chunks):
            document.chunks.append(
                KnowledgeChunk(position=position, content=content, embedding=list(vector))
            )
        if binding is not None:
            document.bindings.append(binding)
        self.db.add(document)
        self.db.commit()
        self.db.refresh(document)
        return document

    def resolve_scope(self, channel: str, endpoint: str) -> List[UUID]:
        """Document ids bound to an endpoint. Unbound endpoints see nothing."""
        binding = (
            self.db.query(ChannelBinding)
            .filter(ChannelBinding.channel == channel, ChannelBinding.endpoint == endpoint)
            .first()
        )
        if binding is None:
            return []
        return [doc.id for doc in binding.documents]

    def query(
        self,
        vector: Sequence[float],
        scope: Optional[List[UUID]] = None,
        k: int = 5,
    ) -> List[RetrievalMatch]:
        """Top-k chunks by cosine similarity, scope None meaning all documents. Ties keep insertion order."""
        if k <= 0 or not vector:
            return []
        q = self.db.query(KnowledgeChunk)
        if scope is not None:
            if not scope:
                return []
            q = q.filter(KnowledgeChunk.document_id.in_(scope))
        chunks = q.order_by(KnowledgeChunk.id.asc()).all()
        if not chunks:
            return []

        # Chunks indexed with another vector size cannot be compared and score 0
        scores = np.zeros(len(chunks), dtype="float32")
        comparable = [
            i for i, chunk in enumerate(chunks) if len(chunk.embedding or []) == len(vector)
        ]
        if comparable:
            matrix = np.array([chunks[i].embedding for i in comparable], dtype="float32")
            scores[comparable] = cosine_scores(vector, matrix)

        # Stable sort keeps insertion order among equal scores
        order = np.argsort(-scores, kind="stable")[:k]
        return [
            RetrievalMatch(
                chunk_text=chunks[i].content,
                score=float(scores[i]),
                source_id=f"{chunks[i].document_id}:{chunks[i].position}",
            )
            for i in order
        ]
