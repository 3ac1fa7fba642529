from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "DocQA"
    ENV: str = "local"
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DATA_DIR: str = "./data"
    DB_PATH: str = "./data/docqa.sqlite3"

    # chunking
    CHUNK_SIZE: int = Field(default=1000, gt=0)
    CHUNK_OVERLAP: int = Field(default=200, ge=0)
    MERGE_SIMILAR_CHUNKS: bool = False
    MERGE_THRESHOLD: float = Field(default=0.7, ge=0.0, le=1.0)

    # uploads
    MAX_FILE_SIZE: int = 10 * 1024 * 1024
    ALLOWED_FILE_TYPES: str = "pdf,txt,docx,md"

    # queries
    MAX_QUERY_LENGTH: int = 1000
    MAX_RESULTS_PER_QUERY: int = 5
    CONTEXT_SNIPPET_CHARS: int = 600

    # embeddings
    # Backends:
    # - ollama: uses Ollama /api/embed (local-first)
    # - openai: uses OpenAI embeddings
    # - none: no embeddings, queries are ranked lexically
    EMBED_BACKEND: str = "ollama"  # ollama|openai|none
    OLLAMA_EMBED_MODEL: str = "nomic-embed-text"
    OPENAI_EMBED_MODEL: str = "text-embedding-3-small"
    EMBED_CONCURRENCY: int = Field(default=8, gt=0)

    # llm
    LLM_PROVIDER: str = "ollama"  # ollama|openai
    OLLAMA_BASE_URL: str = "http://localhost:11434"
    OLLAMA_MODEL: str = "llama3.1"
    OLLAMA_NUM_PREDICT: int = 512
    OLLAMA_TEMPERATURE: float = 0.1
    OLLAMA_TOP_P: float = 0.9
    OLLAMA_KEEP_ALIVE: str = "30m"
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    LLM_TEMPERATURE: float = 0.1

    # optional vector index mirror; the sqlite store stays authoritative
    VECTOR_BACKEND: str = "none"  # none|qdrant
    VECTOR_DB_URL: str = "http://localhost:6333"
    VECTOR_COLLECTION: str = "docqa_chunks"
    VECTOR_PREFETCH: int = 50
    VECTOR_RECREATE_ON_DIM_MISMATCH: bool = True

    # retries / timeouts (seconds)
    MAX_RETRIES: int = Field(default=3, ge=0)
    RETRY_BASE_DELAY: float = 1.0
    RETRY_MAX_DELAY: float = 10.0
    EXTERNAL_TIMEOUT: float = 30.0
    PROCESSING_TIMEOUT: float = 300.0

    # CORS (for browser-based UIs)
    # Comma-separated list of allowed origins.
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def allowed_file_types(self) -> list[str]:
        return [t.strip().lower() for t in (self.ALLOWED_FILE_TYPES or "").split(",") if t.strip()]

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in (self.CORS_ORIGINS or "").split(",") if o.strip()]


settings = Settings()
