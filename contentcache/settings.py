from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", populate_by_name=True, extra="ignore"
    )

    # Upstream (Notion) API Configuration
    notion_api_key: str = Field(default="", alias="NOTION_API_KEY")
    notion_version: str = Field(default="2022-06-28", alias="NOTION_VERSION")
    notion_api_base: str = Field(
        default="https://api.notion.com/v1", alias="NOTION_API_BASE"
    )
    request_timeout: float = Field(default=60.0, alias="NOTION_REQUEST_TIMEOUT")
    max_retries: int = Field(default=3, alias="NOTION_MAX_RETRIES")
    connection_backoff_base: float = Field(
        default=3.0, alias="NOTION_CONNECTION_BACKOFF"
    )
    application_backoff_base: float = Field(
        default=1.0, alias="NOTION_APPLICATION_BACKOFF"
    )

    # Collection databases
    product_database_id: str = Field(default="", alias="NOTION_DATABASE_ID")
    charger_database_id: str = Field(default="", alias="NOTION_CHARGER_DB")
    cable_database_id: str = Field(default="", alias="NOTION_CABLE_DB_ID")

    # Cache Configuration (seconds)
    list_ttl: float = Field(default=60, alias="CACHE_LIST_TTL")
    detail_ttl: float = Field(default=300, alias="CACHE_DETAIL_TTL")
    image_ttl: float = Field(default=7 * 24 * 60 * 60, alias="CACHE_IMAGE_TTL")
    image_fetch_timeout: float = Field(default=30.0, alias="IMAGE_FETCH_TIMEOUT")
    janitor_interval_minutes: int = Field(default=30, alias="CACHE_JANITOR_INTERVAL")
    janitor_grace: float = Field(default=24 * 60 * 60, alias="CACHE_JANITOR_GRACE")
    cache_debug: bool = Field(default=False, alias="CACHE_DEBUG")

    # Webhook
    webhook_secret: str = Field(default="", alias="NOTION_WEBHOOK_SECRET")

    # Server
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")


global_settings = Settings()
