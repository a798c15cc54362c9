"""Config file."""
from urllib.parse import quote_plus

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from token_catalog.app.domain.merge_policy import MergeConfig
from token_catalog.app.domain.options import ImportOptions


class Settings(BaseSettings):
    """Application settings."""

    # PROJECT
    project_name: str = Field(..., alias="PROJECT_NAME")

    # DATABASE
    postgres_user: str = Field(..., alias="POSTGRES_USER")
    postgres_password: SecretStr = Field(..., alias="POSTGRES_PASSWORD")
    postgres_server: str = Field(..., alias="POSTGRES_SERVER")
    postgres_port: int = Field(..., alias="POSTGRES_PORT")
    postgres_db: str = Field(..., alias="POSTGRES_DB")
    database_url: str | None = Field(None, alias="DATABASE_URL")

    # TOKENS IMPORT
    bridged_tokens_enabled: bool = Field(False, alias="BRIDGED_TOKENS_ENABLED")
    tokens_import_timeout: float = Field(60.0, gt=0, alias="TOKENS_IMPORT_TIMEOUT")
    tokens_import_batch_size: int = Field(500, gt=0, alias="TOKENS_IMPORT_BATCH_SIZE")

    @model_validator(mode="after")
    def assemble_db_url(self) -> "Settings":
        if not self.database_url:
            user = quote_plus(self.postgres_user)
            password = quote_plus(self.postgres_password.get_secret_value())
            host = self.postgres_server
            port = self.postgres_port
            db = self.postgres_db

            self.database_url = f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{db}"

        return self

    def merge_config(self) -> MergeConfig:
        return MergeConfig(enable_extended_field_set=self.bridged_tokens_enabled)

    def import_options(self) -> ImportOptions:
        return ImportOptions(timeout=self.tokens_import_timeout)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings: Settings = Settings()
