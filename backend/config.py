from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    google_cloud_project: str = ""
    firestore_emulator_host: Optional[str] = None
    # CORS origins — set ALLOWED_ORIGINS env var for production (JSON list)
    allowed_origins: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
    ]
    # Base used when generating shareable haunt links
    public_base_url: str = "https://heinoustrivia.com"
    default_haunt: str = "headquarters"
    questions_per_game: int = 20
    starter_pack_id: str = "starter-pack"
    # Idle games are dropped from memory after this long
    game_ttl_minutes: int = 120
    max_live_games: int = 10000
    # Built client bundle; mounted at / when the directory exists
    static_dir: str = ""
    debug: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
    )


settings = Settings()
