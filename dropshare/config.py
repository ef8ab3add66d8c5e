from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Group settings
    reserved_group_name: str = "All Connections"
    propagate_on_connect: bool = False  # also sync the requester when an invitation is accepted

    # Store settings
    local_store_path: str = "data/sharing.json"
    sqlite_store_path: str = "data/sharing.db"
    sqlite_busy_timeout_ms: int = 10000
    sqlite_pool_size: int = 5

    # Share link settings
    share_link_ttl_days: int | None = None  # None means links never expire

    log_level: str = "INFO"  # Can be DEBUG, INFO, WARNING, ERROR, CRITICAL


settings = Settings()
