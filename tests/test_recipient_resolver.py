import pytest

from dao.watcher_dao import WatcherDAO
from models.question import ApprovalStatus
from models.user import UserRole
from schemas.events import AnswerCreated, QuestionApproved, QuestionRejected, MessageCreated, VoteCast
from services.recipient_resolver import RecipientResolver
from utils.errors import NotFound


def test_answer_notifies_question_author(db, make_user, make_question):
    student = make_user()
    advisor = make_user(UserRole.ADVISOR)
    question = make_question(student)

    recipients = RecipientResolver(db).recipients_for(
        AnswerCreated(question_id=question.id, answer_id=1, actor_id=advisor.id)
    )

    assert recipients == {student.id}


def test_answer_by_author_notifies_nobody(db, make_user, make_question):
    student = make_user()
    question = make_question(student)

    recipients = RecipientResolver(db).recipients_for(
        AnswerCreated(question_id=question.id, answer_id=1, actor_id=student.id)
    )

    assert recipients == set()


def test_answer_includes_watchers_but_not_actor(db, make_user, make_question):
    student = make_user()
    watcher = make_user()
    advisor = make_user(UserRole.ADVISOR)
    question = make_question(student)
    WatcherDAO(db).add(question.id, watcher.id)
    WatcherDAO(db).add(question.id, advisor.id)

    recipients = RecipientResolver(db).recipients_for(
        AnswerCreated(question_id=question.id, answer_id=1, actor_id=advisor.id)
    )

    assert recipients == {student.id, watcher.id}


def test_moderation_notifies_author_only(db, make_user, make_question):
    student = make_user()
    admin = make_user(UserRole.ADMIN)
    watcher = make_user()
    question = make_question(student, approval=ApprovalStatus.PENDING)
    WatcherDAO(db).add(question.id, watcher.id)
    resolver = RecipientResolver(db)

    approved = resolver.recipients_for(QuestionApproved(question_id=question.id, actor_id=admin.id))
    rejected = resolver.recipients_for(QuestionRejected(question_id=question.id, actor_id=admin.id, reason="dup"))

    assert approved == {student.id}
    assert rejected == {student.id}


def test_student_message_reaches_first_staff_answerer(db, make_user, make_question, make_answer):
    student = make_user()
    first_advisor = make_user(UserRole.ADVISOR)
    second_advisor = make_user(UserRole.ADVISOR)
    peer = make_user()
    question = make_question(student)
    make_answer(question, peer)
    make_answer(question, first_advisor)
    make_answer(question, second_advisor)

    recipients = RecipientResolver(db).recipients_for(
        MessageCreated(question_id=question.id, message_id=1, actor_id=student.id, actor_role="STUDENT")
    )

    assert recipients == {first_advisor.id}


def test_staff_message_always_reaches_author(db, make_user, make_question, make_answer):
    student = make_user()
    advisor = make_user(UserRole.ADVISOR)
    question = make_question(student)
    make_answer(question, advisor)

    recipients = RecipientResolver(db).recipients_for(
        MessageCreated(question_id=question.id, message_id=1, actor_id=advisor.id, actor_role="ADVISOR")
    )

    assert recipients == {student.id}


def test_message_without_staff_answer(db, make_user, make_question):
    student = make_user()
    peer = make_user()
    question = make_question(student)

    recipients = RecipientResolver(db).recipients_for(
        MessageCreated(question_id=question.id, message_id=1, actor_id=peer.id, actor_role="STUDENT")
    )

    assert recipients == {student.id}


def test_vote_has_no_recipients(db, make_user, make_question):
    student = make_user()
    voter = make_user()
    question = make_question(student)

    recipients = RecipientResolver(db).recipients_for(
        VoteCast(question_id=question.id, answer_id=1, actor_id=voter.id)
    )

    assert recipients == set()


def test_inactive_users_are_skipped(db, make_user, make_question):
    student = make_user(is_active=False)
    advisor = make_user(UserRole.ADVISOR)
    question = make_question(student)

    recipients = RecipientResolver(db).recipients_for(
        AnswerCreated(question_id=question.id, answer_id=1, actor_id=advisor.id)
    )

    assert recipients == set()


def test_unknown_question(db, make_user):
    user = make_user()
    with pytest.raises(NotFound):
        RecipientResolver(db).recipients_for(QuestionApproved(question_id=999, actor_id=user.id))


@pytest.mark.parametrize("build_event", [
    lambda q, actor: AnswerCreated(question_id=q, answer_id=1, actor_id=actor),
    lambda q, actor: QuestionApproved(question_id=q, actor_id=actor),
    lambda q, actor: QuestionRejected(question_id=q, actor_id=actor, reason="off topic"),
    lambda q, actor: MessageCreated(question_id=q, message_id=1, actor_id=actor, actor_role="ADMIN"),
    lambda q, actor: VoteCast(question_id=q, answer_id=1, actor_id=actor),
], ids=["answer", "approved", "rejected", "message", "vote"])
def test_actor_is_never_a_recipient(db, make_user, make_question, make_answer, build_event):
    # The admin authored, answered first and watches the question: every rule would pick them
    admin = make_user(UserRole.ADMIN)
    question = make_question(admin)
    make_answer(question, admin)
    WatcherDAO(db).add(question.id, admin.id)

    recipients = RecipientResolver(db).recipients_for(build_event(question.id, admin.id))

    assert admin.id not in recipients
