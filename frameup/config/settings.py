# frameup/config/settings.py
from pydantic_settings import BaseSettings
from typing import List

class Settings(BaseSettings):
    # API
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Frameup Compositor"

    # CORS
    ALLOWED_HOSTS: List[str] = ["*"]

    # Assets (frames/<id>/frame.png, decos/<id>/deco.png)
    ASSETS_DIR: str = "assets"
    REQUEST_TIMEOUT: int = 30

    # Canvas
    MAX_CANVAS_SIZE: int = 2048
    DEFAULT_WIDTH_RATIO: float = 0.1
    SELECTION_COLOR: str = "#00aabb"

    # Decorations
    DEFAULT_DECORATION_SCALE: float = 0.1
    DECORATION_BASE_RATIO: float = 0.1
    MAX_DECORATION_SCALE: float = 20.0
    FALLBACK_MIN_DIMENSION: int = 500

    # Workers
    MAX_WORKERS: int = 4

    # Sessions (idle timeout in seconds)
    MAX_SESSIONS: int = 100
    SESSION_IDLE_TIMEOUT: int = 1800

    # Env
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
