"""
Notification fan-out: persist, then live emit, then push, per recipient.

publish() is called by domain actions after their own transaction has committed.
Recipients are processed concurrently and settle independently: a failure for one
recipient or one device token never aborts the others. Only an unknown question
(NotFound) escapes to the caller.
"""
import asyncio
import logging
from typing import Callable, List, Optional

from pydantic import TypeAdapter
from sqlalchemy.orm import Session

from config.config_database import SessionLocal
from dao.notification_dao import NotificationDAO
from models.notification import Notification
from schemas.events import DomainEvent
from schemas.notification import FanoutReport, NotificationResponse
from schemas.push_token import PushPayload
from services.connection_gateway import ConnectionGateway, get_gateway, user_room
from services.push_provider import PushProvider, get_push_provider
from services.push_token_service import PushTokenRegistry, mask_token
from services.recipient_resolver import RecipientContext, RecipientResolver
from utils.errors import Conflict, DeliveryFailure, PersistenceFailure

logger = logging.getLogger(__name__)

NOTIFICATION_EVENT = "notification:new"

_event_adapter = TypeAdapter(DomainEvent)


class NotificationFanoutEngine:

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        gateway: Optional[ConnectionGateway] = None,
        push_provider: Optional[PushProvider] = None
    ):
        self.session_factory = session_factory
        self.gateway = gateway or get_gateway()
        self.push_provider = push_provider or get_push_provider()

    async def publish(self, event) -> FanoutReport:
        """Accepts an event model or its dict form."""
        if isinstance(event, dict):
            event = _event_adapter.validate_python(event)

        context = await asyncio.to_thread(self._resolve, event)
        report = FanoutReport(kind=event.kind, recipients=sorted(context.recipients))
        if not context.recipients:
            logger.debug(f"No recipients for {event.kind} {event.event_key}")
            return report

        results = await asyncio.gather(
            *(self._deliver_to(recipient_id, event, context, report) for recipient_id in report.recipients),
            return_exceptions=True
        )
        for recipient_id, result in zip(report.recipients, results):
            if isinstance(result, BaseException):
                logger.error(
                    f"❌ Fan-out of {event.kind} {event.event_key} to user {recipient_id} crashed: {result}",
                    exc_info=result
                )

        if report.degraded:
            logger.warning(
                f"⚠️ {event.kind} {event.event_key}: persisted {len(report.persisted)}/{len(report.recipients)}, "
                f"failed for users {report.persistence_failures}"
            )
        else:
            logger.info(
                f"✅ {event.kind} {event.event_key}: persisted {len(report.persisted)}, "
                f"duplicates {len(report.skipped_duplicates)}, "
                f"push {report.push_attempted - report.push_failed}/{report.push_attempted}"
            )
        return report

    def _resolve(self, event) -> RecipientContext:
        db = self.session_factory()
        try:
            return RecipientResolver(db).resolve(event)
        finally:
            db.close()

    async def _deliver_to(self, recipient_id: int, event, context: RecipientContext, report: FanoutReport):
        try:
            notification = await asyncio.to_thread(self._persist, recipient_id, event, context)
        except Conflict:
            # Already stored (and delivered) by an earlier publish of the same event
            report.skipped_duplicates.append(recipient_id)
            logger.debug(f"Duplicate {event.kind} {event.event_key} for user {recipient_id}, skipping delivery")
            return
        except PersistenceFailure as e:
            report.persistence_failures.append(recipient_id)
            logger.error(f"❌ {e.detail}", exc_info=e.__cause__)
            return

        report.persisted.append(recipient_id)

        await self.gateway.emit_to_room(user_room(recipient_id), NOTIFICATION_EVENT, notification)

        await self._push_to(recipient_id, event, notification, report)

    def _persist(self, recipient_id: int, event, context: RecipientContext) -> dict:
        title, body = event.render(context.question_title)
        db = self.session_factory()
        try:
            notification = NotificationDAO(db).create(Notification(
                recipient_id=recipient_id,
                kind=event.kind,
                event_key=event.event_key,
                title=title,
                body=body,
                deep_link=event.deep_link(),
                related_refs=event.related_refs(),
            ))
            return NotificationResponse.model_validate(notification).model_dump(mode="json")
        except Conflict:
            raise
        except Exception as e:
            raise PersistenceFailure(
                recipient_id,
                f"Could not store {event.kind} {event.event_key} for user {recipient_id}: {e}"
            ) from e
        finally:
            db.close()

    async def _push_to(self, recipient_id: int, event, notification: dict, report: FanoutReport):
        try:
            tokens = await asyncio.to_thread(self._tokens_for, recipient_id)
        except Exception as e:
            logger.warning(f"⚠️ Could not load push tokens for user {recipient_id}: {e}")
            return
        if not tokens:
            return

        payload = PushPayload(
            title=notification["title"],
            body=notification["body"] or "",
            link=notification["deep_link"],
            data={
                "notificationId": notification["id"],
                "kind": event.kind,
                **event.related_refs(),
            },
        )

        report.push_attempted += len(tokens)
        results = await asyncio.gather(
            *(self.push_provider.send(token, payload) for token in tokens),
            return_exceptions=True
        )

        rejected: List[str] = []
        for token, result in zip(tokens, results):
            if result is None:
                continue
            report.push_failed += 1
            if isinstance(result, DeliveryFailure):
                logger.warning(f"⚠️ Push to {result.target} for user {recipient_id} failed: {result.detail}")
                if result.permanent:
                    rejected.append(token)
            else:
                logger.warning(f"⚠️ Push to {mask_token(token)} for user {recipient_id} failed: {result!r}")

        for token in rejected:
            try:
                await asyncio.to_thread(self._revoke_rejected, token)
            except Exception as e:
                logger.warning(f"⚠️ Could not revoke rejected token {mask_token(token)}: {e}")

    def _tokens_for(self, recipient_id: int) -> List[str]:
        db = self.session_factory()
        try:
            return PushTokenRegistry(db).tokens_for(recipient_id)
        finally:
            db.close()

    def _revoke_rejected(self, token: str) -> bool:
        db = self.session_factory()
        try:
            return PushTokenRegistry(db).revoke_rejected(token)
        finally:
            db.close()


_fanout_engine: Optional[NotificationFanoutEngine] = None


def get_fanout_engine() -> NotificationFanoutEngine:
    """Process-wide engine (Singleton). Also used as a FastAPI dependency."""
    global _fanout_engine
    if _fanout_engine is None:
        _fanout_engine = NotificationFanoutEngine()
    return _fanout_engine


def set_fanout_engine(engine: Optional[NotificationFanoutEngine]) -> None:
    global _fanout_engine
    _fanout_engine = engine
