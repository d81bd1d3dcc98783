
from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):

    chroma_host: str = "localhost"
    chroma_port: int = 8000
    chroma_collection: str = "rag_documents"
    chroma_tenant: str = "default_tenant"
    chroma_database: str = "default_database"

    # Embedding gateway: "ollama" | "sentence_transformers"
    embedding_provider: str = "ollama"
    embedding_model: str = "dengcao/Qwen3-Embedding-4B:Q4_K_M"
    embedding_dimension: int = 2560
    embedding_timeout: float = 30.0
    ollama_base_url: str = "http://localhost:11434"

    batch_size: int = 50
    max_concurrent_batches: int = 3
    chunk_size: int = 1000
    chunk_overlap: int = 200
    supported_extensions: list[str] = [
        ".txt", ".md", ".js", ".ts", ".tsx", ".py", ".java",
        ".cpp", ".c", ".h", ".json", ".xml", ".html", ".css",
    ]
    skip_directories: list[str] = ["node_modules", ".git", ".vscode", "dist", "build"]

    default_top_k: int = 5
    max_top_k: int = 20
    search_timeout: float = 10.0

    reranker_model: str = "dengcao/Qwen3-Reranker-4B:Q4_K_M"
    enable_reranking: bool = True
    reranker_temperature: float = 0.0
    reranker_max_retries: int = 3
    reranker_timeout: float = 30.0
    rerank_batch_size: int = 10
    rerank_default_score: float = 0.1
    rerank_keep_unmatched: bool = True

    llm_base_url: str = "http://localhost:11434/v1"
    llm_model: str = "deepseek-r1:7b"
    llm_max_tokens: int = 1024
    llm_temperature: float = 0.7
    rag_enabled: bool = True
    history_max_messages: int = 10

    # "development" | "production" | anything else keeps the values above
    app_env: str = ""
    memory_limit_mb: int | None = None

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"

    @model_validator(mode="after")
    def _apply_profile(self) -> "Settings":
        if self.app_env == "production":
            self.batch_size = 100
            self.max_concurrent_batches = 5
        elif self.app_env == "development":
            self.batch_size = 20
            self.max_concurrent_batches = 2

        if self.memory_limit_mb is not None:
            if self.memory_limit_mb < 512:
                self.batch_size = min(self.batch_size, 25)
                self.max_concurrent_batches = min(self.max_concurrent_batches, 2)
            elif self.memory_limit_mb > 2048:
                self.batch_size = max(self.batch_size, 75)
                self.max_concurrent_batches = max(self.max_concurrent_batches, 4)

        self.batch_size = max(1, self.batch_size)
        self.max_concurrent_batches = max(1, self.max_concurrent_batches)
        self.chunk_size = max(1, self.chunk_size)
        # overlap >= chunk_size would never advance the chunker
        self.chunk_overlap = max(0, min(self.chunk_overlap, self.chunk_size - 1))
        self.max_top_k = max(1, self.max_top_k)
        return self


settings = Settings()
