"""
Configuration settings for Plate Sync.

Reads environment variables (a local .env file is honoured) and falls back to
Google Secret Manager for the Gemini API key.
"""

import os
import logging
from dataclasses import dataclass, field
from typing import List, Dict, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Values that count as "not configured" even though the variable is set
PLACEHOLDER_VALUES = {
    "",
    "undefined",
    "null",
    "none",
    "changeme",
    "your_api_key",
    "your-api-key",
    "your_client_id",
    "your-client-id",
}

# Secret Manager cache to avoid repeated API calls
_secrets_cache: Dict[str, str] = {}


def is_placeholder(value: Optional[str]) -> bool:
    """Return True when a credential is missing, empty or an obvious placeholder."""
    if value is None:
        return True
    return value.strip().lower() in PLACEHOLDER_VALUES


def get_secret(secret_name: str, project_id: Optional[str] = None) -> Optional[str]:
    """
    Fetch a secret from Google Secret Manager.

    Args:
        secret_name: Name of the secret (e.g., 'plate-sync-gemini-api-key')
        project_id: GCP project ID. If None, uses GCP_PROJECT_ID env var.

    Returns:
        Secret value as string, or None if not found.
    """
    if secret_name in _secrets_cache:
        return _secrets_cache[secret_name]

    # Allow environment variable override for local development
    env_override = os.getenv(secret_name.upper().replace('-', '_'))
    if env_override:
        _secrets_cache[secret_name] = env_override
        return env_override

    project = project_id or os.getenv('GCP_PROJECT_ID')
    if not project:
        return None

    try:
        from google.cloud import secretmanager

        client = secretmanager.SecretManagerServiceClient()
        name = f"projects/{project}/secrets/{secret_name}/versions/latest"

        response = client.access_secret_version(request={"name": name})
        secret_value = response.payload.data.decode("UTF-8")

        _secrets_cache[secret_name] = secret_value
        logger.info(f"Loaded secret '{secret_name}' from Secret Manager")
        return secret_value

    except ImportError:
        logger.warning("google-cloud-secret-manager not installed, using environment variables only")
        return None
    except Exception as e:
        logger.warning(f"Could not fetch secret '{secret_name}' from Secret Manager: {e}")
        return None


@dataclass
class VisionConfig:
    """Gemini plate recognition configuration."""
    api_key: Optional[str] = None
    model_name: str = "gemini-2.0-flash-exp"
    endpoint: str = "https://generativelanguage.googleapis.com/v1beta"
    max_attempts: int = 3
    timeout_seconds: float = 30.0

    @property
    def has_credential(self) -> bool:
        return not is_placeholder(self.api_key)


@dataclass
class DriveConfig:
    """Google Drive and OAuth configuration."""
    api_key: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    scopes: List[str] = field(default_factory=lambda: [
        'https://www.googleapis.com/auth/drive.file'
    ])
    ready_timeout_seconds: float = 10.0
    upload_timeout_seconds: float = 60.0
    upload_endpoint: str = "https://www.googleapis.com/upload/drive/v3/files"

    @property
    def has_client_id(self) -> bool:
        return not is_placeholder(self.client_id)


@dataclass
class SyncSettings:
    """Sync behavior settings."""
    max_folder_name_length: int = 100
    photo_content_type: str = "image/jpeg"
    photo_name_template: str = "photo_{index}.jpg"


@dataclass
class PipelineConfig:
    """Main pipeline configuration."""
    db_path: str = "repairs.db"
    vision: VisionConfig = field(default_factory=VisionConfig)
    drive: DriveConfig = field(default_factory=DriveConfig)
    sync: SyncSettings = field(default_factory=SyncSettings)


def get_pipeline_config() -> PipelineConfig:
    """
    Create pipeline configuration from environment variables and Secret Manager.

    Environment variables:
        GEMINI_API_KEY / API_KEY: Gemini key (GEMINI_API_KEY_SECRET names the
            Secret Manager fallback, default: plate-sync-gemini-api-key)
        GEMINI_MODEL_NAME: Model used for plate extraction
        GEMINI_ENDPOINT: Base URL of the Generative Language API
        OCR_MAX_ATTEMPTS: Total attempts per recognition (default: 3)
        OCR_TIMEOUT_SECONDS: Per-request timeout
        GOOGLE_API_KEY: Drive API key used for discovery
        GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET: OAuth client for the account picker
        DRIVE_READY_TIMEOUT_SECONDS: Bound on client bootstrap (default: 10)
        DRIVE_UPLOAD_TIMEOUT_SECONDS: Per-upload timeout
        REPAIR_DB_PATH: SQLite file for local repair records
    """
    load_dotenv()

    gemini_secret_name = os.getenv('GEMINI_API_KEY_SECRET', 'plate-sync-gemini-api-key')
    gemini_api_key = (
        os.getenv('API_KEY') or
        os.getenv('GEMINI_API_KEY') or
        get_secret(gemini_secret_name)
    )

    vision_config = VisionConfig(
        api_key=gemini_api_key,
        model_name=os.getenv('GEMINI_MODEL_NAME', 'gemini-2.0-flash-exp'),
        endpoint=os.getenv('GEMINI_ENDPOINT', 'https://generativelanguage.googleapis.com/v1beta'),
        max_attempts=int(os.getenv('OCR_MAX_ATTEMPTS', '3')),
        timeout_seconds=float(os.getenv('OCR_TIMEOUT_SECONDS', '30'))
    )

    drive_config = DriveConfig(
        api_key=os.getenv('GOOGLE_API_KEY', ''),
        client_id=os.getenv('GOOGLE_CLIENT_ID'),
        client_secret=os.getenv('GOOGLE_CLIENT_SECRET'),
        ready_timeout_seconds=float(os.getenv('DRIVE_READY_TIMEOUT_SECONDS', '10')),
        upload_timeout_seconds=float(os.getenv('DRIVE_UPLOAD_TIMEOUT_SECONDS', '60'))
    )

    if not vision_config.has_credential:
        logger.warning("Gemini API key missing or invalid; plate recognition is disabled")
    if not drive_config.has_client_id:
        logger.warning("GOOGLE_CLIENT_ID not configured; Drive sync will be unavailable")

    return PipelineConfig(
        db_path=os.getenv('REPAIR_DB_PATH', 'repairs.db'),
        vision=vision_config,
        drive=drive_config,
        sync=SyncSettings()
    )
