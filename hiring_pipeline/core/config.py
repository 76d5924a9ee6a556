import os

from pydantic_settings import BaseSettings, SettingsConfigDict

from hiring_pipeline.core.paths import resolve_repo_path


def _env_files() -> list[str]:
    base = resolve_repo_path(".env")
    env = os.getenv("HP_ENVIRONMENT", "").strip().lower()
    files = [str(base)]
    if env and env != "development":
        files.append(str(resolve_repo_path(f".env.{env}")))
    else:
        files.append(str(resolve_repo_path(".env.local")))
    return files


class Settings(BaseSettings):
    app_name: str = "Hiring Pipeline"
    environment: str = "development"
    log_level: str = "INFO"

    database_url: str
    database_echo: bool = False

    lock_timeout_seconds: float = 10.0
    funnel_precision: int = 2

    model_config = SettingsConfigDict(env_prefix="HP_", env_file=_env_files(), extra="ignore")


settings = Settings()
