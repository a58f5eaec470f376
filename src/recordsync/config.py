from typing import List, Optional

from pydantic_settings import BaseSettings

DEFAULT_COLLECTIONS = [
    "workspaces",
    "pyramids",
    "productDefinitions",
    "contextDocuments",
    "conversations",
    "messages",
    "directories",
    "uiUxArchitectures",
    "diagrams",
    "technicalTasks",
    "pipelines",
    "technicalArchitectures",
    "globalTasks",
    "userSettings",
]


class Settings(BaseSettings):
    database_url: str = "sqlite:///./recordsync.db"
    remote_base_url: str = "http://localhost:8080/api"
    remote_api_token: str = ""
    owner_id: str = ""  # empty means nobody is signed in; sync is refused
    sync_collections: List[str] = list(DEFAULT_COLLECTIONS)
    record_key_field: str = "id"
    record_owner_field: str = "userId"
    sync_timeout_seconds: float = 30.0
    sync_push_concurrency: int = 4
    sync_interval_minutes: int = 15

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
