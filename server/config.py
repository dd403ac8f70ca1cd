# server/config.py
import os
from dataclasses import dataclass, field
from typing import Optional

def _parse_origins(val: str) -> list[str]:
    if not val:
        return []
    parts = [p.strip() for p in val.split(",") if p.strip()]
    # normalize (no trailing slash)
    return [p[:-1] if p.endswith("/") else p for p in parts]

def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default)

@dataclass
class Settings:
    # Comma-separated list in env; fallback is the local dev frontend
    cors_origins: list[str] = field(
        default_factory=lambda: _parse_origins(
            _env("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173")
        )
    )
    max_upload_mb: int = field(default_factory=lambda: int(_env("MAX_UPLOAD_MB", "25")))
    ml_service_url: str = field(
        default_factory=lambda: _env("ML_SERVICE_URL", "https://naufalrozan-isense-air-service.hf.space")
    )
    sensor_api_base: str = field(
        default_factory=lambda: _env("SENSOR_API_BASE", "https://isensair-backend.onrender.com")
    )
    sensor_api_retries: int = field(default_factory=lambda: int(_env("SENSOR_API_RETRIES", "5")))
    sensor_api_backoff: float = field(default_factory=lambda: float(_env("SENSOR_API_BACKOFF", "1.0")))
    # local mirror of the WECON logger's CSV dumps
    wecon_path: Optional[str] = field(default_factory=lambda: _env("WECON_PATH") or None)
    draw_limit: int = field(default_factory=lambda: int(_env("DRAW_LIMIT", "2000")))
    log_level: str = field(default_factory=lambda: _env("LOG_LEVEL", "INFO"))
