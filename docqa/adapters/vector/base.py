from abc import ABC, abstractmethod


class VectorIndex(ABC):
    @abstractmethod
    async def ensure_collection(self, dim: int) -> None: ...
    @abstractmethod
    async def upsert(self, ids: list[str], vectors: list[list[float]], payloads: list[dict]) -> None: ...
    @abstractmethod
    async def search(self, vector: list[float], top_k: int, document_ids: list[str] | None = None) -> list[str]: ...
    @abstractmethod
    async def delete_by_doc_id(self, doc_id: str) -> None: ...

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        return None
