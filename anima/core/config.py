from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://anima:anima@db:5432/anima"
    APP_ENV: str = "development"

    # Include internal exception detail in 5xx error envelopes.
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://anima.example,https://api.anima.example"
    CORS_ORIGINS: str = "*"

    # Groq exposes an OpenAI-compatible chat completions API.
    GROQ_API_KEY: str = ""
    GROQ_BASE_URL: str = "https://api.groq.com/openai/v1"
    GROQ_MODEL: str = "llama-3.1-8b-instant"
    AI_TIMEOUT_SECONDS: float = 30.0
    AI_TEMPERATURE: float = 0.7

    # Descriptions shorter than this are re-synthesized on level-up.
    DESCRIPTION_MIN_LENGTH: int = 50
    CONSTELLATION_WINDOW_DAYS: int = 7

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
