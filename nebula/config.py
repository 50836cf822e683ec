from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    database_url: str = "sqlite:///./nebula.db"
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_statement_timeout_ms: int = 15000
    db_echo: bool = False

    secret_key: str = "dev-secret-key-change-in-production"
    refresh_secret_key: str = "dev-refresh-secret-key-change-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24
    refresh_token_expire_days: int = 7

    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    from_name: str = "Nebula Tickets"
    from_email: str = ""

    ticket_number_prefix: str = "NBL-"
    qr_image_size: int = 300
    max_ticket_price: float = 10000.0

    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]
    allowed_hosts: list[str] = ["localhost", "127.0.0.1"]
    rate_limit_enabled: bool = True
    login_rate_limit: str = "5/minute"

    log_level: str = "INFO"

    admin_email: str = ""
    admin_password: str = ""
    admin_name: str = "Administrator"

    scheduler_enabled: bool = True
    token_sweep_interval_minutes: int = 60

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
