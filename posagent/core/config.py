# posagent/core/config.py

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from loguru import logger
from pathlib import Path
from typing import List


def find_dotenv_path(filename='.env', raise_error_if_not_found=False, usecwd=False) -> str | None:
    """Walks up from this file (or the CWD) looking for `filename`."""
    if usecwd or '__file__' not in globals(): start_dir = Path.cwd()
    else: start_dir = Path(__file__).resolve().parent
    current_dir = start_dir
    for _ in range(10):
        env_path = current_dir / filename
        if env_path.is_file(): logger.debug(f"Found .env file at: {env_path}"); return str(env_path)
        parent_dir = current_dir.parent
        if parent_dir == current_dir: break
        current_dir = parent_dir
    if not usecwd and '__file__' in globals():
         env_path_cwd = Path.cwd() / filename
         if env_path_cwd.is_file(): logger.debug(f"Found .env file at CWD: {env_path_cwd}"); return str(env_path_cwd)
    logger.debug(f"{filename} not found in parent directories of {start_dir} or CWD.")
    if raise_error_if_not_found: raise IOError(f'{filename} not found')
    return None


class Settings(BaseSettings):
    PROJECT_NAME: str = "POS Support Agent"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = Field(default=["*"])

    # Sunmi Open API
    SUNMI_APP_ID: str | None = None
    SUNMI_APP_KEY: str | None = None
    SUNMI_API_BASE_URL: str = "https://openapi.sunmi.com"
    SUNMI_TIMEOUT_SECONDS: float = 10.0 # Per attempt, not per operation

    # AI Services
    GEMINI_API_KEY: str | None = None
    GEMINI_MODEL: str = "gemini-1.5-flash"
    LLM_TIMEOUT_SECONDS: float = 60.0

    model_config = SettingsConfigDict(
        # .env first, then .env.local overrides
        env_file=(find_dotenv_path('.env'), find_dotenv_path('.env.local')),
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=False,
    )

    @property
    def sunmi_configured(self) -> bool:
        return bool(self.SUNMI_APP_ID and self.SUNMI_APP_KEY)

    @property
    def llm_configured(self) -> bool:
        return bool(self.GEMINI_API_KEY)


@lru_cache()
def get_settings() -> Settings:
    """Loads and validates the application settings."""
    logger.info("Loading application settings...")
    env_files_found = [p for p in [find_dotenv_path('.env'), find_dotenv_path('.env.local')] if p]
    if env_files_found:
        logger.info(f"Loading environment variables from: {', '.join(env_files_found)}")
    else:
        logger.warning("No .env file found. Loading settings from system environment variables only.")

    try:
        settings_instance = Settings()
    except ValueError as val_err:
        logger.critical(f"CRITICAL ERROR in settings validation: {val_err}")
        raise SystemExit(f"Settings validation failed: {val_err}")

    # Missing credentials degrade features, they do not stop the service
    if not settings_instance.sunmi_configured:
        logger.warning("Sunmi credentials missing (SUNMI_APP_ID, SUNMI_APP_KEY). Device calls will be rejected by the vendor.")
    if not settings_instance.llm_configured:
        logger.warning("GEMINI_API_KEY missing. Chat, analysis and troubleshooting will answer with setup instructions.")

    logger.info("Settings loaded and validated successfully.")
    return settings_instance
