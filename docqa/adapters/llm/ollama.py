from __future__ import annotations

import httpx

from docqa.adapters.llm.base import LLM
from docqa.core.config import Settings


class OllamaLLM(LLM):
    name = "ollama"

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None):
        self.base = settings.OLLAMA_BASE_URL.rstrip("/")
        self.model = settings.OLLAMA_MODEL
        self.keep_alive = settings.OLLAMA_KEEP_ALIVE
        self.options = {
            "num_predict": settings.OLLAMA_NUM_PREDICT,
            "temperature": settings.OLLAMA_TEMPERATURE,
            "top_p": settings.OLLAMA_TOP_P,
        }
        self._client = client or httpx.AsyncClient(timeout=180)

    async def generate(self, prompt: str) -> str:
        r = await self._client.post(
            f"{self.base}/api/generate",
            json={
                "model": self.model,
                "prompt": prompt,
                "stream": False,
                "keep_alive": self.keep_alive,
                "options": self.options,
            },
        )
        r.raise_for_status()
        return r.json().get("response", "")

    async def ping(self) -> bool:
        try:
            r = await self._client.get(f"{self.base}/api/tags", timeout=3.0)
            return r.status_code == 200
        except httpx.HTTPError:
            return False

    async def aclose(self) -> None:
        await self._client.aclose()
