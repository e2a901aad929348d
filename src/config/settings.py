"""Application settings loaded from environment variables via pydantic-settings.

Values come from environment variables first, then a ``.env`` file in the
working directory, then the defaults below.  Field ``openai_api_key`` maps
to ``OPENAI_API_KEY`` and so on.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """MemoryGraph application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === LLM / Embeddings ===
    # Empty key = "not configured"; providers report is_available() False.
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoint (TogetherAI, local server, ...)
    openai_text_model: str = ""
    openai_embedding_model: str = ""

    # === OCR ===
    tesseract_lang: str = "eng"
    tesseract_cmd: str = ""  # Explicit binary path when tesseract is not on PATH
    ocr_dpi: int = 150

    # === Storage ===
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "memorygraph_chunks"
    document_db_path: str = "data/documents.db"
    storage_dir: str = "data/uploads"

    # === Ingestion ===
    chunk_size: int = 500
    chunk_overlap: int = 50
    max_file_size: int = 10 * 1024 * 1024
    embedding_batch_size: int = 10
    embedding_batch_delay: float = 1.0

    # === Knowledge graph ===
    entity_batch_size: int = 5
    entity_batch_delay: float = 1.0
    min_entity_relevance: float = 5.0
    max_entities: int = 50
    min_cooccurrence: int = 2

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_llm_providers(self) -> list[str]:
        """Return LLM provider names that have credentials configured."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        return providers
