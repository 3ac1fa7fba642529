"""Qdrant vector index over the REST API.

The sqlite store stays the source of truth for chunks; this index only keeps
a copy of the embeddings so that large corpora can be narrowed to a
prefetch set before exact ranking.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional

import httpx

from docqa.adapters.vector.base import VectorIndex
from docqa.core.config import Settings

logger = logging.getLogger(__name__)


def point_id(chunk_id: str) -> str:
    # Qdrant only accepts unsigned ints or UUIDs as point ids.
    return str(uuid.uuid5(uuid.NAMESPACE_URL, chunk_id))


def _doc_filter(document_ids: Optional[List[str]]) -> Optional[Dict[str, Any]]:
    if not document_ids:
        return None
    return {"must": [{"key": "doc_id", "match": {"any": list(document_ids)}}]}


class QdrantVectorIndex(VectorIndex):
    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None):
        self.collection = settings.VECTOR_COLLECTION
        self.url = settings.VECTOR_DB_URL.rstrip("/")
        self.recreate_on_mismatch = settings.VECTOR_RECREATE_ON_DIM_MISMATCH
        self._client = client or httpx.AsyncClient(timeout=20.0)

    async def _existing_dim(self) -> Optional[int]:
        r = await self._client.get(f"{self.url}/collections/{self.collection}")
        if r.status_code != 200:
            return None
        vectors = r.json().get("result", {}).get("config", {}).get("params", {}).get("vectors")
        # Possible shapes:
        # 1) {"size": 768, "distance": "Cosine"}
        # 2) {"default": {"size": 768, ...}} (named vectors)
        if isinstance(vectors, dict) and "size" in vectors:
            return int(vectors["size"])
        if isinstance(vectors, dict) and isinstance(vectors.get("default"), dict) and "size" in vectors["default"]:
            return int(vectors["default"]["size"])
        return None

    async def ensure_collection(self, dim: int) -> None:
        """Ensure the collection exists AND has the expected embedding dimension."""
        existing_dim = await self._existing_dim()
        if existing_dim is not None:
            if existing_dim == dim:
                return
            if not self.recreate_on_mismatch:
                raise RuntimeError(
                    f"Qdrant collection '{self.collection}' has dim={existing_dim} but expected dim={dim}. "
                    "Set VECTOR_RECREATE_ON_DIM_MISMATCH=true to auto-recreate."
                )
            logger.warning("recreating collection %s (dim %d -> %d)", self.collection, existing_dim, dim)
            r = await self._client.delete(f"{self.url}/collections/{self.collection}")
            r.raise_for_status()

        body = {"vectors": {"size": dim, "distance": "Cosine"}}
        r = await self._client.put(f"{self.url}/collections/{self.collection}", json=body)
        r.raise_for_status()

    async def upsert(self, ids: List[str], vectors: List[List[float]], payloads: List[Dict[str, Any]]) -> None:
        points = [
            {"id": point_id(i), "vector": v, "payload": {**p, "chunk_id": i}}
            for i, v, p in zip(ids, vectors, payloads)
        ]
        r = await self._client.put(
            f"{self.url}/collections/{self.collection}/points?wait=true",
            json={"points": points},
        )
        r.raise_for_status()

    async def search(self, vector: List[float], top_k: int, document_ids: Optional[List[str]] = None) -> List[str]:
        payload: Dict[str, Any] = {"vector": vector, "limit": top_k, "with_payload": True}
        qfilter = _doc_filter(document_ids)
        if qfilter:
            payload["filter"] = qfilter
        r = await self._client.post(f"{self.url}/collections/{self.collection}/points/search", json=payload)
        if r.status_code == 404:
            # nothing has been indexed yet
            return []
        r.raise_for_status()
        out = []
        for hit in r.json().get("result", []):
            cid = (hit.get("payload") or {}).get("chunk_id")
            if cid:
                out.append(str(cid))
        return out

    async def delete_by_doc_id(self, doc_id: str) -> None:
        """Delete all points that belong to a document (by payload field `doc_id`)."""
        body = {"filter": {"must": [{"key": "doc_id", "match": {"value": doc_id}}]}}
        r = await self._client.post(f"{self.url}/collections/{self.collection}/points/delete?wait=true", json=body)
        if r.status_code == 404:
            # collection not created yet, nothing to delete
            return
        r.raise_for_status()

    async def ping(self) -> bool:
        try:
            r = await self._client.get(f"{self.url}/collections", timeout=3.0)
            return r.status_code == 200
        except httpx.HTTPError:
            return False

    async def aclose(self) -> None:
        await self._client.aclose()
