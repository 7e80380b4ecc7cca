from models.answer import Answer
from models.notification import Notification
from models.question import Question, ApprovalStatus, QuestionStatus
from models.user import UserRole
from conftest import auth_headers


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_advisor_answer_notifies_student(client, db, make_user, make_question, gateway, push_provider):
    student = make_user()
    advisor = make_user(UserRole.ADVISOR)
    question = make_question(student, approval=ApprovalStatus.APPROVED, status=QuestionStatus.OPEN)

    response = client.post(
        f"/api/questions/{question.id}/answers",
        json={"content": "Book a slot on the advising page."},
        headers=auth_headers(advisor),
    )

    assert response.status_code == 201
    answer_id = response.json()["id"]
    assert response.json()["author"]["id"] == advisor.id

    rows = db.query(Notification).all()
    assert [(r.recipient_id, r.kind) for r in rows] == [(student.id, "ANSWER_CREATED")]
    assert rows[0].related_refs == {"questionId": question.id, "answerId": answer_id}

    assert "answer:new" in gateway.events_for(f"user:{student.id}")
    assert "answer:new" in gateway.events_for(f"question:{question.id}")
    assert gateway.events_for(f"user:{advisor.id}") == []

    db.expire_all()
    assert db.get(Question, question.id).status == QuestionStatus.ANSWERED.value


def test_answer_requires_approved_question(client, make_user, make_question):
    student = make_user()
    advisor = make_user(UserRole.ADVISOR)
    question = make_question(student, approval=ApprovalStatus.PENDING)

    response = client.post(
        f"/api/questions/{question.id}/answers",
        json={"content": "Too early"},
        headers=auth_headers(advisor),
    )

    assert response.status_code == 400


def test_answer_requires_credential(client, make_user, make_question):
    question = make_question(make_user())

    response = client.post(f"/api/questions/{question.id}/answers", json={"content": "hi"})

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


def test_answer_to_unknown_question(client, make_user):
    response = client.post("/api/questions/999/answers", json={"content": "hi"}, headers=auth_headers(make_user()))
    assert response.status_code == 404


def test_answer_edit_once_and_delete_rules(client, db, make_user, make_question, make_answer, gateway):
    student = make_user()
    advisor = make_user(UserRole.ADVISOR)
    admin = make_user(UserRole.ADMIN)
    question = make_question(student)
    answer = make_answer(question, advisor, content="First draft")
    url = f"/api/questions/{question.id}/answers/{answer.id}"

    assert client.patch(url, json={"content": "Hijack"}, headers=auth_headers(student)).status_code == 403

    edited = client.patch(url, json={"content": "Second draft"}, headers=auth_headers(advisor))
    assert edited.status_code == 200
    assert edited.json()["content"] == "Second draft"
    assert edited.json()["original_content"] == "First draft"
    assert edited.json()["edit_count"] == 1
    assert "answer:updated" in gateway.events_for(f"question:{question.id}")

    assert client.patch(url, json={"content": "Third draft"}, headers=auth_headers(advisor)).status_code == 400

    assert client.delete(url, headers=auth_headers(student)).status_code == 403
    assert client.delete(url, headers=auth_headers(admin)).status_code == 200
    assert "answer:deleted" in gateway.events_for(f"question:{question.id}")
    db.expire_all()
    assert db.get(Answer, answer.id) is None


def test_admin_approval_notifies_author(client, db, make_user, make_question):
    student = make_user()
    admin = make_user(UserRole.ADMIN)
    question = make_question(student, approval=ApprovalStatus.PENDING)

    response = client.post(f"/api/admin/questions/{question.id}/approve", headers=auth_headers(admin))

    assert response.status_code == 200
    assert response.json()["approval_status"] == "APPROVED"
    rows = db.query(Notification).all()
    assert [(r.recipient_id, r.kind) for r in rows] == [(student.id, "QUESTION_APPROVED")]
    db.expire_all()
    assert db.get(Question, question.id).approval_status == ApprovalStatus.APPROVED.value


def test_only_admins_moderate(client, make_user, make_question):
    student = make_user()
    advisor = make_user(UserRole.ADVISOR)
    question = make_question(student, approval=ApprovalStatus.PENDING)

    response = client.post(f"/api/admin/questions/{question.id}/approve", headers=auth_headers(advisor))

    assert response.status_code == 403


def test_rejection_needs_reason(client, db, make_user, make_question):
    student = make_user()
    admin = make_user(UserRole.ADMIN)
    question = make_question(student, approval=ApprovalStatus.PENDING)
    url = f"/api/admin/questions/{question.id}/reject"

    assert client.post(url, json={}, headers=auth_headers(admin)).status_code == 422
    assert client.post(url, json={"reason": "   "}, headers=auth_headers(admin)).status_code == 400

    response = client.post(url, json={"reason": "Duplicate of #12"}, headers=auth_headers(admin))

    assert response.status_code == 200
    assert response.json()["rejection_reason"] == "Duplicate of #12"
    row = db.query(Notification).filter_by(recipient_id=student.id).one()
    assert row.kind == "QUESTION_REJECTED"
    assert "Duplicate of #12" in row.body


def test_notification_listing_and_read_state(client, make_user, make_question):
    student = make_user()
    admin = make_user(UserRole.ADMIN)
    other = make_user()
    first = make_question(student, approval=ApprovalStatus.PENDING, title="First")
    second = make_question(student, approval=ApprovalStatus.PENDING, title="Second")
    client.post(f"/api/admin/questions/{first.id}/approve", headers=auth_headers(admin))
    client.post(f"/api/admin/questions/{second.id}/approve", headers=auth_headers(admin))

    listing = client.get("/api/notifications", headers=auth_headers(student)).json()

    assert listing["total"] == 2
    assert listing["unread_count"] == 2
    assert "Second" in listing["notifications"][0]["body"]
    newest_id = listing["notifications"][0]["id"]

    assert client.patch(f"/api/notifications/{newest_id}/read", headers=auth_headers(other)).status_code == 403
    assert client.patch("/api/notifications/9999/read", headers=auth_headers(student)).status_code == 404
    marked = client.patch(f"/api/notifications/{newest_id}/read", headers=auth_headers(student))
    assert marked.json()["is_read"] is True
    assert client.get("/api/notifications/unread-count", headers=auth_headers(student)).json() == {"unread_count": 1}

    all_read = client.patch("/api/notifications/read-all", headers=auth_headers(student)).json()
    assert all_read["marked_count"] == 1
    assert client.get("/api/notifications/unread-count", headers=auth_headers(student)).json() == {"unread_count": 0}
    assert client.get("/api/notifications?unread_only=true", headers=auth_headers(student)).json()["total"] == 2


def test_push_token_endpoints(client, make_user):
    student = make_user()
    other = make_user()

    registered = client.post(
        "/api/notifications/token",
        json={"token": "fcm-device-token", "user_agent": "Firefox"},
        headers=auth_headers(student),
    )
    assert registered.status_code == 200
    assert registered.json()["owner_user_id"] == student.id

    not_mine = client.request("DELETE", "/api/notifications/token", json={"token": "fcm-device-token"},
                              headers=auth_headers(other))
    assert not_mine.json()["message"] == "Push token not registered"

    removed = client.request("DELETE", "/api/notifications/token", json={"token": "fcm-device-token"},
                             headers=auth_headers(student))
    assert removed.json()["message"] == "Push token removed"


def test_view_and_vote_endpoints(client, make_user, make_question, make_answer, gateway):
    student = make_user()
    viewer = make_user()
    question = make_question(student)
    answer = make_answer(question, make_user(UserRole.ADVISOR))

    first = client.post(f"/api/questions/{question.id}/view", headers=auth_headers(viewer)).json()
    second = client.post(f"/api/questions/{question.id}/view", headers=auth_headers(viewer)).json()
    assert (first["incremented"], second["incremented"]) == (True, False)
    assert second["views_count"] == 1

    vote_url = f"/api/questions/{question.id}/answers/{answer.id}/vote"
    assert client.post(vote_url, headers=auth_headers(viewer)).json() == {"action": "added", "votes_count": 1}
    assert client.post(vote_url, headers=auth_headers(viewer)).json() == {"action": "removed", "votes_count": 0}
    assert gateway.events_for(f"question:{question.id}") == ["answer:updated", "answer:updated"]


def test_messages_and_watchers(client, db, make_user, make_question, make_answer):
    student = make_user()
    advisor = make_user(UserRole.ADVISOR)
    watcher = make_user()
    question = make_question(student)
    make_answer(question, advisor)

    assert client.post(f"/api/questions/{question.id}/watch", headers=auth_headers(watcher)).json() == {"watching": True}
    assert client.get(f"/api/questions/{question.id}/watch", headers=auth_headers(watcher)).json() == {"watching": True}

    posted = client.post(
        f"/api/questions/{question.id}/messages",
        json={"content": "Is the deadline Friday?"},
        headers=auth_headers(student),
    )
    assert posted.status_code == 201

    recipients = sorted(r.recipient_id for r in db.query(Notification).filter_by(kind="MESSAGE_CREATED"))
    assert recipients == sorted([advisor.id, watcher.id])

    messages = client.get(f"/api/questions/{question.id}/messages", headers=auth_headers(watcher)).json()
    assert [m["content"] for m in messages["messages"]] == ["Is the deadline Friday?"]

    assert client.delete(f"/api/questions/{question.id}/watch", headers=auth_headers(watcher)).json() == {"watching": False}
