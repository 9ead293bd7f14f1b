from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    """Application configuration; every field can be set via environment or .env"""

    # Database (patients, agenda, clinical records, LLM cache)
    database_url: str = "sqlite:///./clinical_assistant.db"

    # App
    app_name: str = "Clinical Assistant Engine"
    debug: bool = False
    log_level: str = "INFO"

    # Knowledge gateway LLM
    llm_provider: str = "openai"  # 'openai' or 'anthropic'
    llm_model: str = ""  # e.g., 'gpt-4o' for OpenAI, 'claude-3-5-sonnet-latest' for Anthropic
    llm_api_key: str = ""
    llm_max_tokens: int = 1024
    llm_temperature: float = 0.2

    # Cache knowledge answers in the llm_cache table
    enable_llm_cache: bool = True

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

settings = Settings()
