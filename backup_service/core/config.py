# core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional, Dict, List


class Settings(BaseSettings):
    """
    Centralized application configuration.
    Grouped logically for readability.
    """

    # ------------------------------------------------------------
    # Project / Runtime
    # ------------------------------------------------------------
    PROJECT_NAME: str = "CollabHunts Backup Service"
    DEBUG: bool = True
    ENABLE_CORS: bool = True

    # HTTP / API
    FRONTEND_ENDPOINT: str = ""
    BACKEND_ENDPOINT: str = ""
    RATE_LIMIT_MIN: str = "10"
    RATE_LIMIT_ENABLED: bool = True

    """
    Upper bound for every outbound HTTP call (signing + transfer).
    A timeout is reported as a transport failure.
    """
    HTTP_TIMEOUT_SECS: float = 60.0

    # ------------------------------------------------------------
    # Backup destination (S3)
    # ------------------------------------------------------------
    AWS_REGION: str = "us-east-1"
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    AWS_BUCKET_NAME: Optional[str] = None
    AWS_S3_ENDPOINT: Optional[str] = Field(
        default=None,
        description="Endpoint domain for virtual-hosted URLs; defaults to s3.<region>.amazonaws.com",
    )

    # ------------------------------------------------------------
    # CDN tier (Cloudflare R2, S3-compatible, path-style)
    # ------------------------------------------------------------
    # inventoried from the records tables, never written, so no R2 keys
    R2_ACCOUNT_ID: Optional[str] = None
    R2_BUCKET_NAME: Optional[str] = None
    R2_PUBLIC_URL: Optional[str] = None

    # ------------------------------------------------------------
    # Source data store (Supabase)
    # ------------------------------------------------------------
    SUPABASE_URL: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None
    SUPABASE_PROJECT_ID: str = "olcygpkghmaqkezmunyu"
    SUPABASE_PAGE_SIZE: int = Field(
        default=1000,
        description="Rows per PostgREST range request and entries per storage list call",
    )

    # ------------------------------------------------------------
    # Database snapshot contents
    # ------------------------------------------------------------
    BACKUP_VERSION: str = "2.0"
    DB_BACKUP_FILE_PREFIX: str = "collabhunts-backup"

    """
    Tables read in full on every database snapshot, in order
    """
    BACKUP_TABLES: List[str] = [
        "profiles",
        "user_roles",
        "brand_profiles",
        "creator_profiles",
        "brand_subscriptions",
        "creator_services",
        "creator_social_accounts",
        "creator_payout_settings",
        "bookings",
        "campaigns",
        "campaign_applications",
        "conversations",
        "messages",
        "notifications",
        "reviews",
        "payouts",
        "profile_views",
        "backup_history",
    ]

    """
    Static schema descriptors written into every snapshot
    """
    SCHEMA_ENUMS: Dict[str, List[str]] = {
        "app_role": ["admin", "brand", "creator"],
    }
    SCHEMA_FUNCTIONS: List[str] = [
        "create_default_brand_subscription",
        "notify_message_recipient",
        "has_role",
        "handle_new_user",
        "update_updated_at_column",
        "update_conversation_last_message",
    ]
    FUNCTION_INVENTORY: Dict[str, str] = {
        "admin-reset-password": "Allows administrators to reset user passwords. Validates admin role via JWT and uses service role to update passwords.",
        "database-backup": "Creates comprehensive database backups including all data, schema, and configurations. Uploads to AWS S3 with versioning.",
        "backup-media": "Mirrors storage buckets to S3 and writes an inventory of CDN-hosted media.",
        "verify-backup": "Validates backup integrity by checking file existence and structure in S3.",
    }

    # ------------------------------------------------------------
    # Media snapshot contents
    # ------------------------------------------------------------
    STORAGE_BUCKETS: List[str] = [
        "profile-images",
        "portfolio-media",
        "brand-logos",
        "career-cvs",
    ]
    MEDIA_BACKUP_PREFIX: str = "media-backups"
    MEDIA_BACKUP_MAX_WORKERS: int = Field(
        default=4,
        description="Parallel per-file copies inside one media snapshot run",
    )

    """
    Record collections describing media held on the CDN tier.
    Only counted and sized, never copied.
    """
    REMOTE_INVENTORY_SOURCES: List[Dict[str, str]] = [
        {
            "name": "content_library",
            "table": "content_library",
            "columns": "id,brand_profile_id,file_name,file_size_bytes,file_type,mime_type,r2_key,thumbnail_r2_key,created_at",
        },
        {
            "name": "booking_deliverables",
            "table": "booking_deliverables",
            "columns": "id,booking_id,creator_profile_id,file_name,file_size_bytes,file_type,mime_type,r2_key,thumbnail_r2_key,created_at",
        },
        {
            "name": "portfolio_media",
            "table": "creator_portfolio_media",
            "columns": "id,creator_profile_id,media_url,media_type,file_size_bytes,r2_key,created_at",
            "require_key": "r2_key",
        },
    ]

    # ------------------------------------------------------------
    # Backup history / notifications
    # ------------------------------------------------------------
    BACKUP_HISTORY_TABLE: str = "backup_history"
    RESEND_API_KEY: Optional[str] = None
    RESEND_API_URL: str = "https://api.resend.com/emails"
    ADMIN_EMAIL: Optional[str] = None
    BACKUP_EMAIL_FROM: str = "CollabHunts Backup <onboarding@resend.dev>"
    BACKUP_HISTORY_URL: str = "https://collabhunts.lovable.app/backup-history"

    # ------------------------------------------------------------
    # Redis Configuration
    # ------------------------------------------------------------

    """
    Redis connection settings for the JTI replay cache
    """
    REDIS_HOST: str = Field(
        default="localhost",
        description="Redis server hostname"
    )
    REDIS_PORT: int = Field(
        default=6379,
        description="Redis server port"
    )
    REDIS_DB: int = Field(
        default=0,
        description="Redis database number (0-15)"
    )
    REDIS_PASSWORD: Optional[str] = Field(
        default=None,
        description="Redis password (optional)"
    )
    REDIS_SSL: bool = Field(
        default=False,
        description="Use TLS/SSL for Redis connection"
    )
    REDIS_SOCKET_TIMEOUT: int = Field(
        default=5,
        description="Socket timeout in seconds"
    )
    REDIS_SOCKET_CONNECT_TIMEOUT: int = Field(
        default=5,
        description="Socket connect timeout in seconds"
    )
    REDIS_MAX_CONNECTIONS: int = Field(
        default=20,
        description="Maximum connections in the pool"
    )

    # ------------------------------------------------------------
    # Security
    # ------------------------------------------------------------
    JWT_SECRET_KEY: str = Field(..., env="JWT_SECRET_KEY")
    JTI_CACHE_TTL_MINUTES: int = 15
    @property
    def JTI_CACHE_TTL_SECONDS(self) -> int:
        return self.JTI_CACHE_TTL_MINUTES * 60
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: str = "collabhunts-backup"
    JWT_ISSUER: str = "collabhunts-auth"
    JWT_LEEWAY_SECONDS: int = 30
    JWT_REQUIRE_JTI: bool = True
    JWT_ROLE_CLAIM: str = "role"
    ADMIN_ROLES: List[str] = ["admin"]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
