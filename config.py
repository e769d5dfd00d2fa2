"""
Application Settings

Values come from the environment (a local .env file is loaded first).
Build a Settings object once at startup and hand it to create_app().
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

DEFAULT_JWKS_URL = "https://www.googleapis.com/service_accounts/v1/jwk/securetoken@system.gserviceaccount.com"


@dataclass(frozen=True)
class Settings:
    database_url: Optional[str] = None
    database_name: Optional[str] = None
    jwt_secret: str = "fallback-secret-change-in-production"
    firebase_project_id: str = ""
    identity_jwks_url: str = DEFAULT_JWKS_URL
    cloudinary_cloud_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None
    environment: str = "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def cloudinary_configured(self) -> bool:
        return bool(self.cloudinary_cloud_name and self.cloudinary_api_key and self.cloudinary_api_secret)

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            database_url=os.getenv("DATABASE_URL"),
            database_name=os.getenv("DATABASE_NAME"),
            jwt_secret=os.getenv("JWT_SECRET", cls.jwt_secret),
            firebase_project_id=os.getenv("FIREBASE_PROJECT_ID", ""),
            identity_jwks_url=os.getenv("IDENTITY_JWKS_URL", DEFAULT_JWKS_URL),
            cloudinary_cloud_name=os.getenv("CLOUDINARY_CLOUD_NAME"),
            cloudinary_api_key=os.getenv("CLOUDINARY_API_KEY"),
            cloudinary_api_secret=os.getenv("CLOUDINARY_API_SECRET"),
            environment=os.getenv("ENVIRONMENT", "development"),
        )
