"""
Application Configuration
Add constants, secrets, env variables here
"""

from functools import lru_cache
import logging
import os
import json
from pathlib import Path
from pydantic import computed_field, PrivateAttr
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL
import boto3
from botocore.exceptions import BotoCoreError, ClientError
from dotenv import load_dotenv

# Load .env file into os.environ so os.getenv() works correctly
# This must happen before Settings class is instantiated
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def get_secret(secret_name: str, region_name: str) -> dict:
    """
    Retrieve secrets from AWS Secrets Manager

    Args:
        secret_name: Name of the secret in Secrets Manager
        region_name: AWS region where secret is stored

    Returns:
        dict: Parsed secret value

    Raises:
        ClientError: If secret cannot be retrieved
    """
    session = boto3.session.Session()
    client = session.client(
        service_name='secretsmanager',
        region_name=region_name
    )
    get_secret_value_response = client.get_secret_value(
        SecretId=secret_name
    )
    # Parse and return the secret
    secret = get_secret_value_response['SecretString']
    return json.loads(
        secret.replace('\n', '')
    )


# Define settings class for univeral access
class Settings(BaseSettings):
    # Computed or constant values
    client_origin: str | None = os.getenv("client_origin")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Files under PUBLIC_DIR are stored in the db as UPLOADS_URL_PREFIX/...
    PUBLIC_DIR: Path = Path(os.getenv("PUBLIC_DIR", "public"))
    UPLOADS_URL_PREFIX: str = os.getenv("UPLOADS_URL_PREFIX", "/uploads/")
    ORPHAN_PREVIEW_LIMIT: int = int(os.getenv("ORPHAN_PREVIEW_LIMIT", "50"))

    # Cache for AWS Secrets Manager to avoid multiple API calls
    # Note: Must use PrivateAttr for Pydantic v2 private attributes
    _secret_cache: dict | None = PrivateAttr(default=None)

    def _get_config_value(
        self,
        env_var_name: str,
        secret_key_name: str | None = None,
        default: str | None = None
    ) -> str | None:
        """
        Get configuration value from environment variable or AWS Secrets Manager (with caching).

        Args:
            env_var_name: Environment variable name to check first
            secret_key_name: Key name in AWS Secrets (defaults to env_var_name if not provided)
            default: Default value to return if not found in env or secrets

        Returns:
            Configuration value, or default value if not found
        """
        # 1. Check environment variable first
        env_value = os.getenv(env_var_name)
        if env_value:
            return env_value

        # 2. Try to get from AWS Secrets Manager with caching
        if secret_key_name is None:
            secret_key_name = env_var_name

        env_secret = os.getenv('ENV_SECRETS')
        if not env_secret:
            return default

        try:
            # Use cached secret if available
            if self._secret_cache is None:
                self._secret_cache = get_secret(env_secret, os.getenv("AWS_REGION", 'us-east-1'))
        except (BotoCoreError, ClientError, ValueError) as e:
            logging.getLogger(__name__).debug(
                "Secret %s unavailable, using default for %s: %s",
                env_secret, env_var_name, e
            )
            return default

        secret_value = self._secret_cache.get(secret_key_name)
        if secret_value is not None:
            return secret_value

        # 3. Return default value if provided
        return default

    # SQL Server connection parts
    @computed_field
    @property
    def DB_SERVER(self) -> str | None:
        """Get database host from env or secrets"""
        return self._get_config_value("DB_SERVER")

    @computed_field
    @property
    def DB_USERNAME(self) -> str | None:
        """Get database user from env or secrets"""
        return self._get_config_value("DB_USERNAME")

    @computed_field
    @property
    def DB_PASSWORD(self) -> str | None:
        """Get database password from env or secrets"""
        return self._get_config_value("DB_PASSWORD")

    @computed_field
    @property
    def DB_DATABASE(self) -> str | None:
        """Get database name from env or secrets"""
        return self._get_config_value("DB_DATABASE")

    DB_DRIVER: str = os.getenv("DB_DRIVER", "ODBC Driver 18 for SQL Server")
    DB_ENCRYPT: bool = False
    DB_TRUST_SERVER_CERTIFICATE: bool = True

    # SQLAlchemy - Create db connection string
    @computed_field
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str | None:
        """
        Build database URI.
        An explicit SQLALCHEMY_DATABASE_URI wins, then the DB_* parts are
        assembled into an mssql+pyodbc URL. None when neither is configured.
        """
        explicit = self._get_config_value("SQLALCHEMY_DATABASE_URI")
        if explicit:
            return explicit

        server = self.DB_SERVER
        if not server:
            return None

        url = URL.create(
            "mssql+pyodbc",
            username=self.DB_USERNAME,
            password=self.DB_PASSWORD,
            host=server,
            database=self.DB_DATABASE,
            query={
                "driver": self.DB_DRIVER,
                "Encrypt": "yes" if self.DB_ENCRYPT else "no",
                "TrustServerCertificate": "yes" if self.DB_TRUST_SERVER_CERTIFICATE else "no",
            },
        )
        return url.render_as_string(hide_password=False)

    # Read environment variables from .env file, if it exists
    # extra='ignore' prevents validation errors from extra env vars
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Export settings
@lru_cache
def get_settings() -> Settings:
    """
    Get settings instance, cached for performance
    """
    return Settings()


if __name__ == "__main__":
    # To use in other modules
    # from core.config import get_settings
    print(get_settings().SQLALCHEMY_DATABASE_URI)
