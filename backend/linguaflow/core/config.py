from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    app_name: str = "LinguaFlow Lesson Engine"
    debug: bool = False

    # Supabase (empty = in-memory stores)
    supabase_url: str = ""
    supabase_service_key: str = ""

    # LLM
    openai_api_key: str = ""
    gemini_api_key: str = ""
    llm_provider: str = "gemini"
    llm_model: str = "gemini-2.5-flash"
    llm_timeout_seconds: float = 30.0
    llm_max_tokens: int = 4000
    llm_temperature: float = 0.4

    # Stores / cache
    progress_store: str = "memory"
    cache_ttl_seconds: float = 300.0

    # CORS
    frontend_url: str = "http://localhost:3000"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()
