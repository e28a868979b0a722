"""
config.py — Central settings for the training portal
=====================================================
All configuration is loaded from environment variables / .env file.
Copy .env.example → .env and fill in your values.

Live mode activates automatically when the AWS region, Cognito user pool and
app client, S3 bucket, SNS topic and table suffix all contain real
(non-placeholder) values.  Otherwise the local adapters (SQLite file,
in-process identity directory, media directory on disk, logging topic) are
used.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env into os.environ (no-op if already set, safe to call multiple times)
load_dotenv(override=False)

_REPO_ROOT = Path(__file__).resolve().parent.parent.parent


# ─── Helpers ────────────────────────────────────────────────────────────────

def _is_placeholder(value: str) -> bool:
    """Return True if the value looks like an unfilled template placeholder."""
    return not value or "<" in value or value.startswith("your-") or value == "PLACEHOLDER"


# ─── AWS backend ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AwsConfig:
    region:        str
    user_pool_id:  str
    client_id:     str
    bucket:        str
    topic_arn:     str
    table_suffix:  str   # DynamoDB table name suffix, e.g. "-abc123-NONE"

    @property
    def is_configured(self) -> bool:
        """True when every backend identifier is a real (non-placeholder) value."""
        return all(
            bool(v) and not _is_placeholder(v)
            for v in (
                self.region, self.user_pool_id, self.client_id,
                self.bucket, self.topic_arn, self.table_suffix,
            )
        )


# ─── Local backend ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class LocalConfig:
    db_path:     str
    media_dir:   str
    users_path:  str   # local identity directory (JSON)


# ─── Workflow tunables ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class QuizConfig:
    default_passing_score:   int    # used when a course has no passingScore
    video_completion_ratio:  float  # watched fraction that marks a video complete
    video_url_expiry:        int    # seconds a playable URL stays valid


@dataclass(frozen=True)
class AppConfig:
    force_local_mode: bool
    log_level:        str


# ─── Master settings object ──────────────────────────────────────────────────

@dataclass(frozen=True)
class Settings:
    aws:    AwsConfig
    local:  LocalConfig
    quiz:   QuizConfig
    app:    AppConfig

    @property
    def live_mode(self) -> bool:
        """True when AWS settings are real and FORCE_LOCAL_MODE is false."""
        return self.aws.is_configured and not self.app.force_local_mode

    def status_summary(self) -> dict[str, str]:
        """Return a dict of service → status badge for the CLI."""
        def badge(ok: bool) -> str:
            return "🟢 Live" if ok else "⚪ Local"

        live = self.live_mode
        return {
            "Data store":        badge(live),
            "Identity provider": badge(live and not _is_placeholder(self.aws.user_pool_id)),
            "Object storage":    badge(live and not _is_placeholder(self.aws.bucket)),
            "Notification topic": badge(live and not _is_placeholder(self.aws.topic_arn)),
        }


def get_settings() -> Settings:
    """Load all configuration from environment variables."""
    _str   = lambda k, d="": os.getenv(k, d).strip()
    _int   = lambda k, d=0: int(os.getenv(k, str(d)) or d)
    _float = lambda k, d=0.0: float(os.getenv(k, str(d)) or d)
    _bool  = lambda k, d=False: os.getenv(k, str(d)).lower() in ("1", "true", "yes")

    return Settings(
        aws=AwsConfig(
            region       = _str("AWS_REGION", "ca-central-1"),
            user_pool_id = _str("COGNITO_USER_POOL_ID"),
            client_id    = _str("COGNITO_CLIENT_ID"),
            bucket       = _str("S3_BUCKET"),
            topic_arn    = _str("SNS_TOPIC_ARN"),
            table_suffix = _str("DYNAMODB_TABLE_SUFFIX"),
        ),
        local=LocalConfig(
            db_path    = _str("TRAINING_DB_PATH", str(_REPO_ROOT / "training_portal.db")),
            media_dir  = _str("TRAINING_MEDIA_DIR", str(_REPO_ROOT / "media")),
            users_path = _str("TRAINING_USERS_PATH", str(_REPO_ROOT / "training_users.json")),
        ),
        quiz=QuizConfig(
            default_passing_score  = _int("DEFAULT_PASSING_SCORE", 70),
            video_completion_ratio = _float("VIDEO_COMPLETION_RATIO", 0.9),
            video_url_expiry       = _int("VIDEO_URL_EXPIRY_SECONDS", 3600),
        ),
        app=AppConfig(
            force_local_mode = _bool("FORCE_LOCAL_MODE", False),
            log_level        = _str("LOG_LEVEL", "INFO").upper(),
        ),
    )
