from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from pathlib import Path
from functools import lru_cache


class Settings(BaseSettings):
    """
    Process settings loaded from the environment (and an optional ``.env`` file).

    ``LOGGER_CONFIG`` is kept as the raw string: it is parsed separately by
    ``envlogger.core.logging.config.load_logger_config`` so that a malformed
    value degrades to defaults instead of failing settings validation.
    """

    # Raw JSON logger configuration
    LOGGER_CONFIG: str | None = None

    # Directory every file sink (and exceptions.log) is written under
    LOG_DIR: Path = Path("logs")

    # Service name stamped into JSON records; falls back to the working directory name
    LOG_SERVICE_NAME: str | None = None

    # Queue between producers and the sink listener thread (0 = unbounded)
    LOG_QUEUE_MAX_SIZE: int = 10_000
    LOG_QUEUE_BLOCKING: bool = False

    # Route uncaught exceptions to exceptions.log
    LOG_CAPTURE_EXCEPTIONS: bool = True

    @field_validator("LOGGER_CONFIG", mode="before")
    def blank_config_is_none(cls, v: str | None) -> str | None:
        """
        Treat an empty or whitespace-only LOGGER_CONFIG as unset.
        """
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def service_name(self) -> str:
        return self.LOG_SERVICE_NAME or Path.cwd().name

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


# get_settings() takes no arguments and always returns the same settings from the environment,
# so caching it with @lru_cache() avoids re-reading the environment on every logger creation.
@lru_cache()
def get_settings() -> Settings:
    return Settings()
