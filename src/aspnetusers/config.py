from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Store configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_prefix="ASPNETUSERS_")

    database_url: str = Field("sqlite:///aspnetusers.db")
    users_table: str = Field("aspnetusers")
    # empty means "pick the dialect matching the engine"
    dialect: str = Field("")
    hash_iterations: int = Field(10_000, gt=0)


settings = Settings()
