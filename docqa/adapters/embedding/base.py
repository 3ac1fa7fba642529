from abc import ABC, abstractmethod


class Embedder(ABC):
    name: str = "embedder"

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        ...

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        return None
