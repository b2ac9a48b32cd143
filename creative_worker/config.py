# creative_worker/config.py
import os
from functools import lru_cache

from pydantic import BaseModel, ConfigDict, ValidationError

from creative_worker.errors import ConfigurationError


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    project_id: str | None = None
    results_collection: str = "analysis_results"
    metadata_collection: str = "creative_metadata"
    backup_bucket: str | None = None
    results_topic: str | None = None

    retrieval_max_attempts: int = 5
    retrieval_interval_seconds: float = 6.0
    persist_max_attempts: int = 3
    persist_interval_seconds: float = 2.0

    ffprobe_path: str = "ffprobe"
    ffprobe_timeout_seconds: float = 120.0

    log_level: str = "INFO"

    def require_project(self) -> str:
        if not self.project_id:
            raise ConfigurationError("GCP_PROJECT_ID is not set")
        return self.project_id


_ENV_VARS = {
    "project_id": "GCP_PROJECT_ID",
    "results_collection": "RESULTS_COLLECTION",
    "metadata_collection": "METADATA_COLLECTION",
    "backup_bucket": "BACKUP_BUCKET",
    "results_topic": "ANALYSIS_RESULTS_TOPIC",
    "retrieval_max_attempts": "RETRIEVAL_MAX_ATTEMPTS",
    "retrieval_interval_seconds": "RETRIEVAL_INTERVAL_SECONDS",
    "persist_max_attempts": "PERSIST_MAX_ATTEMPTS",
    "persist_interval_seconds": "PERSIST_INTERVAL_SECONDS",
    "ffprobe_path": "FFPROBE_PATH",
    "ffprobe_timeout_seconds": "FFPROBE_TIMEOUT_SECONDS",
    "log_level": "LOG_LEVEL",
}


def load_settings(environ=None) -> Settings:
    """
    Build Settings from environment variables. Unset or empty variables keep
    their defaults; malformed values raise ConfigurationError.
    """
    environ = os.environ if environ is None else environ
    values = {
        field: environ[var]
        for field, var in _ENV_VARS.items()
        if environ.get(var)
    }
    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid worker configuration: {e}") from e


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
