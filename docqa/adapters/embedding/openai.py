from openai import AsyncOpenAI

from docqa.adapters.embedding.base import Embedder
from docqa.core.config import Settings


class OpenAIEmbedder(Embedder):
    name = "openai"

    def __init__(self, settings: Settings):
        if not settings.OPENAI_API_KEY:
            raise RuntimeError("OPENAI_API_KEY is not set")
        self.model = settings.OPENAI_EMBED_MODEL
        self._client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY)

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        # OpenAI supports batching
        resp = await self._client.embeddings.create(model=self.model, input=texts)
        return [d.embedding for d in resp.data]

    async def aclose(self) -> None:
        await self._client.close()
