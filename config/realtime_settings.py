import logging
from typing import Literal, Optional
from pydantic import Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class RealtimeSettings(BaseSettings):
    """
    Live connection gateway configuration

    realtime_backbone:
    - memory: rooms only reach sessions connected to this process (single instance)
    - redis: room broadcasts travel through Redis pub/sub (required for more than one instance)
    """
    realtime_backbone: Literal["memory", "redis"] = Field(
        default="memory",
        description="Broadcast backbone used by emit_to_room"
    )
    realtime_require_auth: bool = Field(
        default=True,
        description="Close connections that fail authentication instead of keeping them anonymous"
    )
    realtime_heartbeat_seconds: int = Field(
        default=25,
        ge=5,
        le=300,
        description="Idle interval before the server sends a heartbeat frame"
    )

    class Config:
        env_file = ".env"
        extra = "allow"
        case_sensitive = False


class PushSettings(BaseSettings):
    """
    Firebase Cloud Messaging (HTTP v1) configuration

    fcm_access_token is an OAuth2 bearer token for the FCM API, issued outside this service.
    """
    push_enabled: bool = Field(default=False, description="Enable/disable push dispatch")
    fcm_project_id: str = Field(default="", description="Firebase project id")
    fcm_access_token: str = Field(default="", description="OAuth2 bearer token for FCM")
    fcm_api_url: str = Field(
        default="https://fcm.googleapis.com/v1/projects/{project_id}/messages:send",
        description="FCM send endpoint template"
    )
    push_timeout_seconds: int = Field(default=10, ge=1, le=60)
    push_icon: str = Field(default="/icons/icon-192x192.png")

    class Config:
        env_file = ".env"
        extra = "allow"
        case_sensitive = False

    def is_valid(self) -> bool:
        if not self.push_enabled:
            return False
        required_fields = [self.fcm_project_id, self.fcm_access_token]
        return all(field and field.strip() for field in required_fields)

    @property
    def send_url(self) -> str:
        return self.fcm_api_url.format(project_id=self.fcm_project_id)

    def __repr__(self) -> str:
        return (
            f"PushSettings("
            f"enabled={self.push_enabled}, "
            f"project_id={self.fcm_project_id or 'NOT_SET'}, "
            f"access_token={'***' if self.fcm_access_token else 'NOT_SET'}"
            f")"
        )


_realtime_settings: Optional[RealtimeSettings] = None
_push_settings: Optional[PushSettings] = None


def get_realtime_settings() -> RealtimeSettings:
    global _realtime_settings
    if _realtime_settings is None:
        _realtime_settings = RealtimeSettings()
        logger.info(
            f"Realtime settings: backbone={_realtime_settings.realtime_backbone}, "
            f"require_auth={_realtime_settings.realtime_require_auth}"
        )
    return _realtime_settings


def get_push_settings() -> PushSettings:
    global _push_settings
    if _push_settings is None:
        _push_settings = PushSettings()
        if _push_settings.is_valid():
            logger.info(f"✅ Push settings loaded: {_push_settings}")
        elif _push_settings.push_enabled:
            logger.warning(
                f"⚠️ Push is ENABLED but configuration is INVALID! Settings: {_push_settings}"
            )
        else:
            logger.info("ℹ️ Push dispatch is disabled")
    return _push_settings


def reload_realtime_settings() -> RealtimeSettings:
    """Force reload settings from .env (useful for testing)"""
    global _realtime_settings
    _realtime_settings = None
    return get_realtime_settings()


def reload_push_settings() -> PushSettings:
    """Force reload settings from .env (useful for testing)"""
    global _push_settings
    _push_settings = None
    return get_push_settings()
