from abc import ABC, abstractmethod


class LLM(ABC):
    name: str = "llm"

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        ...

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        return None
