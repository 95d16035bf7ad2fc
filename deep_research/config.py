from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # OpenAI-compatible gateway (OpenRouter by default)
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    default_model: str = "google/gemini-2.5-flash"
    openrouter_model: str = ""
    planner_model: str = ""  # optional override for research framing only
    judge_model: str = ""  # optional override for coverage evaluation only
    writer_model: str = ""  # optional override for report synthesis only
    planner_max_tokens: int = 2048
    judge_max_tokens: int = 1024
    writer_max_tokens: int = 8192

    # Search provider
    search_provider: str = "serper"  # serper | tavily
    serper_api_key: str = ""
    serper_search_url: str = "https://google.serper.dev/search"
    search_fallback_to_tavily: bool = True
    search_country: str = "us"
    search_language: str = "en"

    # Extract provider
    extract_provider: str = "tavily"  # tavily | jina
    tavily_api_key: str = ""
    jina_api_key: str = ""
    extract_max_urls: int = 5
    extract_max_content_chars: int = 4000

    # Per-call deadline for every search / extract / generation request
    provider_timeout_seconds: float = 45.0
    writer_timeout_seconds: float = 180.0  # long-form report generation

    # Report synthesis
    synthesis_context_char_budget: int = 50000
    report_min_words: int = 1500
    report_language: str = "English"

    # Storage
    storage_backend: str = "supabase"  # supabase | memory
    supabase_url: str = ""
    supabase_service_role_key: str = ""

    # App
    cors_origins: str = "http://localhost:3000"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_to_file: bool = True

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]


settings = Settings()
