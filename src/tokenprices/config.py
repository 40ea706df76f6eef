from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    db_host: str = "localhost"
    db_port: int = 54377
    db_user: str = "postgres"
    db_password: str = "postgres"
    db_name: str = "tokenprices"
    redis_url: str = "redis://localhost:6379/0"
    alchemy_api_key: str = ""
    coingecko_api_key: str = ""
    price_source: str = "alchemy"  # alchemy / deterministic
    price_tolerance_seconds: int = 3600
    backfill_chunk_size: int = 10
    backfill_chunk_delay_seconds: float = 2.0
    backfill_dispatch: str = "local"  # local / celery
    http_rate_per_second: float = 5.0
    http_timeout: float = 30.0
    debug: bool = True

    @property
    def database_url(self) -> str:
        return f"postgresql+asyncpg://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    class Config:
        env_file = ".env"


settings = Settings()
