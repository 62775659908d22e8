# config.py
from typing import List, Optional

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from pixelmorpher.errors import ConfigurationError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def patched_database_url(self) -> Optional[str]:
        if self.database_url and self.database_url.startswith("postgres://"):
            return self.database_url.replace("postgres://", "postgresql://", 1)
        return self.database_url

    secret_key: str = ""
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    google_client_id: str = ""
    google_client_secret: str = ""
    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""
    cloudinary_upload_folder: str = "pixelmorpher"
    redis_url: Optional[str] = None
    # Checked by the connector, not at startup
    database_url: Optional[str] = None

    credit_fee: int = -1
    default_credit_balance: int = 10
    debounce_seconds: float = 1.0
    cors_origins: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    def validate_required(self):
        required_vars = [
            'secret_key', 'cloudinary_cloud_name', 'cloudinary_api_key', 'cloudinary_api_secret',
        ]
        for var in required_vars:
            if not getattr(self, var, None):
                raise ConfigurationError(f"Missing required config: {var}")


try:
    settings = Settings()
except ValidationError as ve:
    print("Config validation failed:", ve)
    raise
