from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from image_delivery.constants import BucketMode


def _env_files() -> list[str]:
    """Load .env from the project root, then a local .env."""
    base = Path(__file__).resolve().parent.parent
    return [str(base / ".env"), ".env"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_env_files(),
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # ── Buckets ──────────────────────────────────────────────────────────────
    bucket_mode: BucketMode = BucketMode.SINGLE
    original_image_bucket_name: str = ""
    transformed_image_bucket_name: str = ""  # empty = do not persist

    # Written as object metadata on every transformed image
    transformed_image_cache_ttl: str = "max-age=31622400"

    # ── Access control ───────────────────────────────────────────────────────
    # Sent by the CDN in x-origin-secret-header; empty rejects every request
    secret_key: str = ""

    # ── Limits ───────────────────────────────────────────────────────────────
    max_image_size: int = 4_700_000  # bytes

    # ── AWS ──────────────────────────────────────────────────────────────────
    aws_region: str = ""  # empty = boto3 default resolution

    # ── Runtime ──────────────────────────────────────────────────────────────
    emulate_edge: bool = False
    log_level: str = "INFO"
