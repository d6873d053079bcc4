from pathlib import Path
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    data_dir: Path = Path.home() / "CampusJobBoard"
    api_prefix: str = "/api/v1"
    host: str = "127.0.0.1"
    port: int = 8000
    cors_origins: list[str] = [
        "http://127.0.0.1:5173",
        "http://localhost:5173",
    ]

    session_ttl_seconds: int = 7 * 24 * 3600
    # First admin account, created on startup when the admins table is empty.
    admin_username: str = "admin"
    admin_password: str = "change-me-now"

    # Cache expiry per key type ("<type>:<key>"), seconds
    cache_ttl_jobs: int = 5 * 60
    cache_ttl_categories: int = 10 * 60
    cache_ttl_tags: int = 10 * 60
    cache_ttl_statistics: int = 15 * 60
    cache_ttl_users: int = 15 * 60
    cache_ttl_default: int = 5 * 60
    cache_max_entries: int = 5000

    common_view_limit: int = 20
    member_quick_view_limit: int = 100
    category_page_size: int = 20
    admin_page_size: int = 10

    view_dedupe_seconds: int = 30
    action_debounce_seconds: float = 1.0
    activation_attempts_per_hour: int = 10

    change_buffer_size: int = 500
    max_upload_bytes: int = 5 * 1024 * 1024

    @property
    def db_path(self) -> Path:
        return self.data_dir / "db.sqlite"

    @property
    def cache_ttls(self) -> dict[str, int]:
        return {
            "jobs": self.cache_ttl_jobs,
            "categories": self.cache_ttl_categories,
            "tags": self.cache_ttl_tags,
            "statistics": self.cache_ttl_statistics,
            "users": self.cache_ttl_users,
        }

    model_config = {"env_prefix": "JOBBOARD_"}


settings = Settings()
