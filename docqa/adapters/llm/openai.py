from openai import AsyncOpenAI

from docqa.adapters.llm.base import LLM
from docqa.core.config import Settings

SYSTEM_PROMPT = "You are a helpful assistant that answers questions about the user's documents."


class OpenAILLM(LLM):
    name = "openai"

    def __init__(self, settings: Settings):
        if not settings.OPENAI_API_KEY:
            raise RuntimeError("OPENAI_API_KEY is not set")
        self.model = settings.OPENAI_MODEL
        self.temperature = settings.LLM_TEMPERATURE
        self._client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY)

    async def generate(self, prompt: str) -> str:
        resp = await self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=self.temperature,
        )
        return resp.choices[0].message.content or ""

    async def aclose(self) -> None:
        await self._client.close()
