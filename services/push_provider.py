import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from config.realtime_settings import PushSettings, get_push_settings
from schemas.push_token import PushPayload
from services.push_token_service import mask_token
from utils.errors import DeliveryFailure

logger = logging.getLogger(__name__)

# FCM error codes meaning the token itself will never work again
PERMANENT_FCM_ERRORS = {"UNREGISTERED", "NOT_FOUND", "INVALID_ARGUMENT"}


class PushProvider(ABC):
    """send(token, payload) either returns or raises DeliveryFailure for that token."""

    @abstractmethod
    async def send(self, token: str, payload: PushPayload) -> None:
        ...

    def close(self):
        pass


class NullPushProvider(PushProvider):
    """Used when push dispatch is disabled"""

    async def send(self, token: str, payload: PushPayload) -> None:
        logger.debug(f"Push disabled, skipping {mask_token(token)}")


class FcmPushProvider(PushProvider):
    """
    Firebase Cloud Messaging HTTP v1 client

    Features:
    - Automatic retry with exponential backoff on 429/5xx
    - Connection pooling
    - Blocking HTTP runs in a worker thread so the event loop is never held
    """

    def __init__(self, settings: PushSettings):
        self.settings = settings

        self.session = requests.Session()
        retry_strategy = Retry(
            total=3,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["POST"],
            raise_on_status=False
        )
        adapter = HTTPAdapter(
            max_retries=retry_strategy,
            pool_connections=10,
            pool_maxsize=20
        )
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)
        self.session.headers.update({
            "Authorization": f"Bearer {settings.fcm_access_token}",
            "Content-Type": "application/json"
        })

        logger.info(f"✅ FCM push provider initialized for project {settings.fcm_project_id}")

    async def send(self, token: str, payload: PushPayload) -> None:
        await asyncio.to_thread(self._send_blocking, token, payload)

    def _send_blocking(self, token: str, payload: PushPayload) -> None:
        target = mask_token(token)
        try:
            response = self.session.post(
                url=self.settings.send_url,
                json=self.build_message(token, payload),
                timeout=self.settings.push_timeout_seconds
            )
        except requests.exceptions.Timeout:
            raise DeliveryFailure(target, "Timeout sending push")
        except requests.exceptions.RequestException as e:
            raise DeliveryFailure(target, f"Connection error: {e}")

        if response.status_code in (200, 201):
            logger.debug(f"✅ Push sent to {target}")
            return

        error_code = self._error_code(response)
        permanent = response.status_code == 404 or error_code in PERMANENT_FCM_ERRORS
        raise DeliveryFailure(
            target,
            f"FCM returned {response.status_code} ({error_code or 'no error code'})",
            permanent=permanent
        )

    def build_message(self, token: str, payload: PushPayload) -> Dict[str, Any]:
        # FCM data values must be strings
        data = {key: str(value) for key, value in payload.data.items() if value is not None}
        data["link"] = payload.link
        return {
            "message": {
                "token": token,
                "notification": {
                    "title": payload.title,
                    "body": payload.body,
                },
                "data": data,
                "webpush": {
                    "notification": {"icon": self.settings.push_icon},
                    "fcm_options": {"link": payload.link},
                },
            }
        }

    @staticmethod
    def _error_code(response) -> Optional[str]:
        try:
            error = response.json().get("error", {})
        except ValueError:
            return None
        for detail in error.get("details", []) or []:
            if isinstance(detail, dict) and detail.get("errorCode"):
                return detail["errorCode"]
        return error.get("status")

    def close(self):
        self.session.close()
        logger.info("FCM push provider closed")


_push_provider: Optional[PushProvider] = None


def get_push_provider() -> PushProvider:
    global _push_provider
    if _push_provider is None:
        settings = get_push_settings()
        _push_provider = FcmPushProvider(settings) if settings.is_valid() else NullPushProvider()
    return _push_provider


def set_push_provider(provider: Optional[PushProvider]) -> None:
    global _push_provider
    _push_provider = provider
