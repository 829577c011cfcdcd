from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    default_pace: str = "5:00/km"
    default_ultra_distance_km: float = 100.0
    default_intensity: float = 1.0
    max_track_points: int = 200_000
    data_dir: Path = Path("data")

    model_config = SettingsConfigDict(
        env_prefix="PACEPLAN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


_settings: Optional[Settings] = None


def init_settings(settings: Optional[Settings] = None) -> Settings:
    """Install the process-wide settings, reading the environment if none given."""
    global _settings
    _settings = settings if settings is not None else Settings()
    return _settings


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
