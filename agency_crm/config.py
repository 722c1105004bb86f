from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "INFO"

    base_url: str = "http://localhost:8000"
    database_url: str = "postgresql+psycopg://app:app@db:5432/app"
    redis_url: str = "redis://redis:6379/0"
    redis_socket_timeout: float = 0.5

    jwt_secret: str = "dev-secret-change-me"
    jwt_issuer: str = "agency-crm-api"
    jwt_audience: str = "agency-crm-api"
    jwt_expires_minutes: int = 60

    magic_link_expires_minutes: int = 15
    magic_link_pepper: str = "dev-pepper-change-me"

    # rate limiting (redis)
    rate_limit_enabled: bool = True
    rate_limit_auth_request_link_per_min: int = 20
    rate_limit_auth_redeem_per_min: int = 30

    # domain events (redis pub/sub)
    events_enabled: bool = True
    events_channel: str = "crm:events"
    events_user_channel_prefix: str = "crm:user:"

    gantt_default_duration_days: int = 7

settings = Settings()
