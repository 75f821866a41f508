from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings

from inclinefit.synthesis.timeline import DuplicatePolicy


class Settings(BaseSettings):
    # Fallback start point when the caller gives none (Cedar Rapids, IA)
    default_lat: float = 42.036369
    default_lon: float = -91.638498
    default_altitude: float = 0.0
    default_bearing: float = 0.0
    target_grade: float = 0.10
    altitude_noise: float = 0.0
    noise_seed: Optional[int] = None
    duplicate_knot_policy: DuplicatePolicy = DuplicatePolicy.FIRST
    clamp_monotonic_distance: bool = False
    record_dump_count: int = 5
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "INCLINEFIT_"

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        return v.upper()


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
