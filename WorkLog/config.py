import json
import logging
from pathlib import Path
from typing import List

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

log = logging.getLogger(__name__)

DEFAULT_HOURLY_RATE = 150.0
DEFAULT_PARTNER = "Unknown"


class Settings(BaseSettings):
    # --- Core Paths ---
    db_path: Path = Path("WorkLog/storage/worklog.db")
    user_settings_path: Path = Path("WorkLog/storage/user_settings.json")

    # --- Gemini Classifier ---
    gemini_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("WORKLOG_GEMINI_API_KEY", "GEMINI_API_KEY"),
    )
    model_name: str = "gemini-2.0-flash"
    llm_temperature: float = 0.1 # Low temperature keeps yes/no answers stable
    llm_top_p: float = 0.1

    # --- Merge Decision ---
    merge_confidence_threshold: float = 0.7 # Pairs must score strictly above this
    client_match_min_confidence: float = 0.6
    weight_client: float = 0.4
    weight_project: float = 0.4
    weight_description: float = 0.2
    generic_project_names: List[str] = ["general"]

    # --- Clustering ---
    comparison_cache_size: int = 4096
    parallel_member_checks: bool = True
    prefilter_min_similarity: float = 0.0 # 0 disables the string pre-filter
    prefilter_n_features: int = 1024

    # --- Category Classification ---
    category_max_retries: int = 2
    category_retry_delay_s: float = 1.0 # Delay grows linearly per attempt
    category_fallback: str = "Professional Services"
    category_max_length: int = 50
    category_cache_size: int = 1024

    # --- Day Boundaries ---
    local_tz: str = "America/Vancouver"

    model_config = SettingsConfigDict(
        env_prefix="WORKLOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra='ignore',
        populate_by_name=True,
    )


def _load_user_settings(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        log.error(f"Failed to read user settings {path}: {e}")
        return {}
    if not isinstance(data, dict):
        log.warning(f"User settings in {path} are not a JSON object, ignoring.")
        return {}
    return data


def get_default_hourly_rate(settings: Settings) -> float:
    """Reads the user's default hourly rate, falling back to 150.

    The file is read on every call so edits apply to the next observation
    without a restart.
    """
    raw = _load_user_settings(settings.user_settings_path).get("defaultRate")
    if raw is None:
        return DEFAULT_HOURLY_RATE
    try:
        rate = float(raw)
    except (TypeError, ValueError):
        log.warning(f"Invalid defaultRate {raw!r} in user settings, using {DEFAULT_HOURLY_RATE}.")
        return DEFAULT_HOURLY_RATE
    if rate <= 0:
        return DEFAULT_HOURLY_RATE
    return rate


def get_active_partner(settings: Settings) -> str:
    """Reads the active partner name, falling back to "Unknown"."""
    name = _load_user_settings(settings.user_settings_path).get("userName")
    if isinstance(name, str) and name.strip():
        return name.strip()
    return DEFAULT_PARTNER
