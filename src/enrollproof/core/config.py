"""Application configuration using pydantic-settings with grouped env prefixes."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class RecordStoreConfig(BaseSettings):
    """Hosted record store configuration."""

    model_config = {"env_prefix": "ENROLLPROOF_STORE_"}

    backend: Literal["memory", "dynamodb"] = "memory"
    table_suffix: str = ""  # "-dev", "-uat", or "" for prod
    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override


class RedisConfig(BaseSettings):
    """Redis access-token cache configuration."""

    model_config = {"env_prefix": "ENROLLPROOF_REDIS_"}

    enabled: bool = False
    host: str = "localhost"
    port: int = 6379
    db: int = 0


class S3Config(BaseSettings):
    """S3 archive for uploaded compliance reports."""

    model_config = {"env_prefix": "ENROLLPROOF_S3_"}

    enabled: bool = False
    bucket: str = "enrollproof-compliance-reports"
    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override


class ImportConfig(BaseSettings):
    """Batch sizes for import write round-trips."""

    model_config = {"env_prefix": "ENROLLPROOF_IMPORT_"}

    employee_batch_size: int = 500
    compliance_batch_size: int = 500
    member_batch_size: int = 1000


class NotificationConfig(BaseSettings):
    """Outbound email settings shared by every dispatch component."""

    model_config = {"env_prefix": "ENROLLPROOF_NOTIFY_"}

    admin_sender_email: str = ""
    app_base_url: str = "http://localhost:3000"
    http_timeout: float = 20.0
    token_refresh_skew_seconds: int = 60


class GoogleOAuthConfig(BaseSettings):
    """Google OAuth client used to refresh Gmail sender tokens."""

    model_config = {"env_prefix": "ENROLLPROOF_GOOGLE_"}

    client_id: str = ""
    client_secret: str = ""
    token_url: str = "https://oauth2.googleapis.com/token"
    gmail_send_url: str = "https://gmail.googleapis.com/gmail/v1/users/me/messages/send"


class MicrosoftOAuthConfig(BaseSettings):
    """Microsoft Entra client used to refresh Outlook sender tokens."""

    model_config = {"env_prefix": "ENROLLPROOF_MICROSOFT_"}

    tenant: str = "organizations"
    client_id: str = ""
    client_secret: str = ""
    scope: str = "openid profile email offline_access User.Read Mail.Send"
    graph_send_url: str = "https://graph.microsoft.com/v1.0/me/sendMail"

    @property
    def token_url(self) -> str:
        return f"https://login.microsoftonline.com/{self.tenant}/oauth2/v2.0/token"


class AppSettings(BaseSettings):
    """Root application settings aggregating all sub-configs."""

    model_config = {"env_prefix": "ENROLLPROOF_"}

    environment: Literal["dev", "uat", "prod"] = "dev"
    log_level: str = "INFO"

    store: RecordStoreConfig = RecordStoreConfig()
    redis: RedisConfig = RedisConfig()
    s3: S3Config = S3Config()
    imports: ImportConfig = ImportConfig()
    notify: NotificationConfig = NotificationConfig()
    google: GoogleOAuthConfig = GoogleOAuthConfig()
    microsoft: MicrosoftOAuthConfig = MicrosoftOAuthConfig()
