from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Backend credentials / endpoints
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    anthropic_api_key: str = ""
    anthropic_base_url: str = "https://api.anthropic.com"
    anthropic_version: str = "2023-06-01"
    ollama_base_url: str = "http://localhost:11434"
    ollama_num_ctx: int = 8192

    # Shared backend behaviour
    llm_timeout: float = 120.0  # read timeout for a single backend request
    llm_max_retries: int = 2  # retries on network / 5xx errors (exponential backoff)
    llm_retry_delay: float = 2.0  # first retry delay in seconds, doubled afterwards
    llm_max_concurrent: int = 3  # per-backend concurrency limit

    # Analysis agents: backend is one of openai | anthropic | ollama
    content_agent_backend: str = "openai"
    content_agent_model: str = "gpt-4-turbo-preview"
    content_agent_temperature: float = 0.3
    content_agent_max_tokens: int = 2000

    structure_agent_backend: str = "anthropic"
    structure_agent_model: str = "claude-3-5-sonnet-20241022"
    structure_agent_temperature: float = 0.3
    structure_agent_max_tokens: int = 2000

    language_agent_backend: str = "openai"
    language_agent_model: str = "gpt-4-turbo-preview"
    language_agent_temperature: float = 0.3
    language_agent_max_tokens: int = 2000

    # Upper bound for one agent call; a timed-out agent degrades to its fallback
    agent_timeout: float = 60.0

    # Realtime suggestions (cheap model, low latency)
    realtime_backend: str = "openai"
    realtime_model: str = "gpt-3.5-turbo"
    realtime_temperature: float = 0.5
    realtime_max_tokens: int = 500
    realtime_timeout: float = 15.0
    realtime_max_suggestions: int = 3

    # Synthesis
    feedback_max_items: int = 5
    expected_words_per_minute: float = 20.0  # handwritten exam pace
    default_time_management_score: int = 70

    # Peer comparison (placeholder until backed by population data)
    peer_average_score: float = 65.0
    peer_top_score: float = 90.0
    peer_jitter: float = 10.0
    peer_percentile_min: float = 5.0
    peer_percentile_max: float = 95.0

    # Result store
    result_max_in_memory: int = 500

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    def agent_config(self, role: str) -> dict:
        """Backend selection for one analysis agent role."""
        return {
            "backend": getattr(self, f"{role}_agent_backend"),
            "model": getattr(self, f"{role}_agent_model"),
            "temperature": getattr(self, f"{role}_agent_temperature"),
            "max_tokens": getattr(self, f"{role}_agent_max_tokens"),
        }


settings = Settings()
