from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # OpenRouter
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_model: str = "openai/gpt-4o-mini"
    openrouter_app_title: str = "AI Search Aggregator"
    query_max_tokens: int = 256
    filter_max_tokens: int = 64
    content_max_tokens: int = 4

    # SearxNG
    searx_url: str = "http://searx:8080"
    searx_language: str = "en"
    searx_locale: str = "en-US"

    # Search pipeline
    default_query_count: int = 5
    max_concurrent_queries: int = 5
    max_concurrent_content: int = 3
    max_items_to_filter: int = 30

    # Content
    content_max_bytes: int = 64 * 1024
    content_truncation_length: int = 3500
    snippet_truncation_length: int = 700
    replace_snippet_with_content: bool = False

    # Validation
    max_prompt_length: int = 1000
    max_query_count: int = 20
    max_engine_count: int = 10
    supported_engines: str = (
        "google,bing,duckduckgo,brave,qwant,yandex,wikipedia,github,stackoverflow,reddit,youtube"
    )

    # Timeouts (seconds)
    search_job_timeout: float = 600.0
    query_generation_timeout: float = 60.0
    search_query_timeout: float = 30.0
    content_fetch_timeout: float = 20.0
    ai_relevance_timeout: float = 30.0
    content_relevance_timeout: float = 30.0

    # WebSocket
    ws_max_connections: int = 100
    ws_max_message_size: int = 64 * 1024
    ws_allowed_origins: str = ""  # empty = accept any origin

    # App
    cors_origins: str = "*"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    debug_log_requests: bool = False

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return _split_csv(self.cors_origins)

    @property
    def supported_engine_set(self) -> set[str]:
        return {engine.lower() for engine in _split_csv(self.supported_engines)}

    @property
    def ws_allowed_origin_list(self) -> list[str]:
        return _split_csv(self.ws_allowed_origins)


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


settings = Settings()
