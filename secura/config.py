from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    # ==========================================================================
    # ENVIRONMENT
    # ==========================================================================
    environment: str = "dev"  # "dev", "prod"
    debug: bool = True

    # ==========================================================================
    # DATABASE
    # ==========================================================================
    database_url: str = "sqlite:///./secura.db"

    # ==========================================================================
    # AI GATEWAY (OpenAI-compatible chat completions)
    # ==========================================================================
    gateway_api_key: str = ""
    gateway_base_url: str = "https://ai.gateway.lovable.dev/v1"
    gateway_forensics_model: str = "google/gemini-2.5-pro"
    gateway_screening_model: str = "google/gemini-2.5-flash"
    gateway_max_tokens: int = 1000
    forensics_temperature: float = 0.3
    screening_temperature: float = 0.1
    gateway_timeout: float = 60.0  # Seconds

    # ==========================================================================
    # FILENAME RULES
    # ==========================================================================
    filename_ruleset: str = "demo_override"  # "demo_override", "uppercase", "none"
    filename_rules_primary: bool = False  # True = rules decide before the gateway is called
    low_confidence_threshold: float = 70.0  # Model confidence (0-100) below this = rules may override
    moderate_confidence_threshold: float = 80.0  # Below this, reasons get an uncertainty note

    # ==========================================================================
    # AUTH
    # ==========================================================================
    token_ttl_days: int = 30  # Default lifetime of issued bearer tokens (0 = no expiry)

    # ==========================================================================
    # RATE LIMITING
    # ==========================================================================
    rate_limit_requests: int = 30  # Max upload requests per window
    rate_limit_window: int = 60  # Window in seconds (60 = per minute)

    # ==========================================================================
    # CORS
    # ==========================================================================
    cors_origins: str = "*"  # Comma-separated origins, or "*" for all

    # ==========================================================================
    # UPLOADS
    # ==========================================================================
    max_upload_bytes: int = 20 * 1024 * 1024  # 20 MB

    model_config = SettingsConfigDict(
        env_prefix="SECURA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # COMPUTED PROPERTIES
    # ==========================================================================

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "prod"

    @property
    def cors_origins_list(self) -> List[str]:
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def expose_error_details(self) -> bool:
        return self.debug and not self.is_production


settings = Settings()
