from __future__ import annotations

from pydantic_settings import BaseSettings

# Hard ceilings; configuration may lower these but never raise them.
MAX_SEARCH_CALLS = 5
MAX_SUMMARY_WORKERS = 5


class ConfigError(ValueError):
    """Raised at startup when a required setting is missing or invalid."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"configuration error for field '{field}': {message}")


class Settings(BaseSettings):
    # OpenAI (required)
    openai_api_key: str = ""
    openai_base_url: str = ""
    research_model: str = "gpt-5"
    summarization_model: str = "gpt-4o"
    structured_output_max_retries: int = 3

    # Exa search (required)
    exa_api_key: str = ""
    exa_endpoint: str = "https://api.exa.ai/search"
    exa_num_search_results: int = 10
    search_timeout_seconds: float = 30.0

    # Research loop budgets
    search_call_budget: int = MAX_SEARCH_CALLS
    max_summary_workers: int = MAX_SUMMARY_WORKERS
    max_research_turns: int = 15

    # App
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def effective_search_budget(self) -> int:
        return min(max(int(self.search_call_budget), 0), MAX_SEARCH_CALLS)

    @property
    def effective_summary_workers(self) -> int:
        return min(max(int(self.max_summary_workers), 1), MAX_SUMMARY_WORKERS)

    def validate_required(self) -> None:
        """Fail fast on settings the external services cannot run without."""
        if not self.openai_api_key.strip():
            raise ConfigError("OPENAI_API_KEY", "an OpenAI API key is required")
        if not self.exa_api_key.strip():
            raise ConfigError("EXA_API_KEY", "an Exa API key is required")
        if not self.exa_endpoint.strip():
            raise ConfigError("EXA_ENDPOINT", "a search endpoint is required")
        if self.exa_num_search_results < 1:
            raise ConfigError("EXA_NUM_SEARCH_RESULTS", "must be at least 1")
        if self.structured_output_max_retries < 0:
            raise ConfigError("STRUCTURED_OUTPUT_MAX_RETRIES", "must not be negative")
        if self.max_research_turns < 1:
            raise ConfigError("MAX_RESEARCH_TURNS", "must be at least 1")


settings = Settings()
