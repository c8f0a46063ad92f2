from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./glass_catalog.db"
    LOG_LEVEL: str = "INFO"

    # Customer tier used when a request does not name one
    DEFAULT_TIER: str = "retail"

    # Seed the demo catalog on first startup when the store is empty
    SEED_ON_STARTUP: bool = False

    # Remote catalog API, optional. Unset means the local store is the only source
    CATALOG_API_BASE: str = ""
    CATALOG_API_TOKEN: str = ""
    CATALOG_API_TIMEOUT: int = 30

    class Config:
        env_file = ".env"


settings = Settings()
