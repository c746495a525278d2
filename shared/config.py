"""Application configuration with startup validation.

All config is validated at import time via pydantic-settings.
Invalid values cause an immediate, clear error.
"""

from pydantic import model_validator
from pydantic_settings import BaseSettings

from sleep.scoring import WEIGHT_PROFILES


class Settings(BaseSettings):
    model_config = {"env_prefix": "SC_", "env_file": ".env"}

    # API
    api_version: str = "v1"
    max_records_per_request: int = 500

    # Logging
    log_json_output: bool = True
    log_level: str = "INFO"

    # Scoring: name of the immutable weight table used by the HTTP surface
    score_weights_profile: str = "default"

    @model_validator(mode="after")
    def validate_settings(self) -> "Settings":
        """Fail fast at startup on values the engine cannot honour."""
        if self.score_weights_profile not in WEIGHT_PROFILES:
            raise ValueError(
                f"Unknown score_weights_profile '{self.score_weights_profile}'. "
                f"Must be one of: {', '.join(sorted(WEIGHT_PROFILES))}"
            )
        if self.max_records_per_request < 1:
            raise ValueError("max_records_per_request must be >= 1")
        return self


settings = Settings()
