import os
import tempfile

_db_dir = tempfile.mkdtemp(prefix="qa-realtime-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_db_dir, 'test.db')}"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["REALTIME_BACKBONE"] = "memory"
os.environ["REALTIME_REQUIRE_AUTH"] = "true"
os.environ["PUSH_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient

import main
from config.config_database import engine, Base, SessionLocal
from models.answer import Answer
from models.question import Question, QuestionStatus, ApprovalStatus
from models.user import User, UserRole
from schemas.push_token import PushPayload
from services.connection_gateway import ConnectionGateway, set_gateway
from services.identity_service import create_access_token
from services.notification_fanout import NotificationFanoutEngine, set_fanout_engine
from services.push_provider import PushProvider, set_push_provider
from services.question_service import can_join_question_room
from services.room_broadcaster import InProcessBroadcaster
from utils.errors import DeliveryFailure


class RecordingGateway(ConnectionGateway):
    """In-process gateway that also keeps every emit for assertions"""

    def __init__(self, **kwargs):
        kwargs.setdefault("broadcaster", InProcessBroadcaster())
        kwargs.setdefault("room_authorizer", can_join_question_room)
        super().__init__(**kwargs)
        self.emitted = []

    async def emit_to_room(self, room, event, payload):
        self.emitted.append((room, event, payload))
        await super().emit_to_room(room, event, payload)

    def events_for(self, room):
        return [event for emitted_room, event, _ in self.emitted if emitted_room == room]


class RecordingPushProvider(PushProvider):
    """Records every send; tokens listed in `failures` raise the given DeliveryFailure"""

    def __init__(self):
        self.calls = []
        self.failures = {}

    async def send(self, token: str, payload: PushPayload) -> None:
        self.calls.append((token, payload))
        failure = self.failures.get(token)
        if failure is not None:
            raise failure

    def fail(self, token: str, permanent: bool = False):
        self.failures[token] = DeliveryFailure(token[:12], "rejected by test provider", permanent=permanent)

    @property
    def tokens_sent(self):
        return [token for token, _ in self.calls]


class FakeTransport:
    """Minimal stand-in for a WebSocket: collects frames and the close code"""

    def __init__(self, fail_sends: bool = False):
        self.frames = []
        self.closed_code = None
        self.fail_sends = fail_sends

    async def send_json(self, data):
        if self.fail_sends:
            raise RuntimeError("transport gone")
        self.frames.append(data)

    async def close(self, code: int = 1000, reason: str = None):
        self.closed_code = code

    def events(self):
        return [frame["event"] for frame in self.frames]


@pytest.fixture(autouse=True)
def setup_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(role: UserRole = UserRole.STUDENT, is_active: bool = True, name: str = None) -> User:
        counter["n"] += 1
        user = User(
            email=f"user{counter['n']}@example.edu",
            full_name=name or f"{role.value.title()} {counter['n']}",
            role=role.value,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_question(db):
    def _make_question(
        author: User,
        approval: ApprovalStatus = ApprovalStatus.APPROVED,
        status: QuestionStatus = QuestionStatus.OPEN,
        title: str = "How do I register for advising?"
    ) -> Question:
        question = Question(
            title=title,
            content="Details",
            author_id=author.id,
            approval_status=approval.value,
            status=status.value,
        )
        db.add(question)
        db.commit()
        db.refresh(question)
        return question

    return _make_question


@pytest.fixture
def make_answer(db):
    def _make_answer(question: Question, author: User, content: str = "Use the portal.") -> Answer:
        answer = Answer(question_id=question.id, author_id=author.id, content=content)
        db.add(answer)
        db.commit()
        db.refresh(answer)
        return answer

    return _make_answer


@pytest.fixture
def gateway():
    gw = RecordingGateway(require_auth=True)
    set_gateway(gw)
    yield gw
    set_gateway(None)


@pytest.fixture
def push_provider():
    provider = RecordingPushProvider()
    set_push_provider(provider)
    yield provider
    set_push_provider(None)


@pytest.fixture
def fanout(gateway, push_provider):
    engine_ = NotificationFanoutEngine(session_factory=SessionLocal, gateway=gateway, push_provider=push_provider)
    set_fanout_engine(engine_)
    yield engine_
    set_fanout_engine(None)


@pytest.fixture
def client(fanout):
    with TestClient(main.app) as test_client:
        yield test_client


def token_for(user: User) -> str:
    return create_access_token(user.id, user.role)


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {token_for(user)}"}
