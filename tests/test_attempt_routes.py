"""
Tests for reading and deleting stored quizzes and for quiz attempts

In-memory library and attempt store behind dependency overrides; ids are
real UUIDs so path validation runs as in production.
"""

import uuid

import pytest
from fastapi.testclient import TestClient

from server import auth
from server.dependencies import get_attempt_store, get_notifier, get_quiz_library
from server.main import create_app
from server.middleware.metrics import normalize_endpoint

from conftest import InMemoryAttemptStore, InMemoryQuizLibrary, RecordingNotifier


@pytest.fixture
def jwt_secret():
    auth.reset_jwt()
    auth.init_jwt("test-secret")
    yield
    auth.reset_jwt()


@pytest.fixture
def library():
    return InMemoryQuizLibrary()


@pytest.fixture
def attempts(library):
    return InMemoryAttemptStore(library)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def client(jwt_secret, library, attempts, notifier):
    app = create_app(use_lifespan=False)
    app.dependency_overrides[get_quiz_library] = lambda: library
    app.dependency_overrides[get_attempt_store] = lambda: attempts
    app.dependency_overrides[get_notifier] = lambda: notifier
    return TestClient(app)


def bearer(user_id="user-1"):
    return {"Authorization": f"Bearer {auth.generate_access_token(user_id)}"}


def start_attempt(client, quiz, user_id="user-1"):
    response = client.post(f"/api/quizzes/{quiz.id}/attempts", headers=bearer(user_id))
    assert response.status_code == 201
    return response.json()["attemptId"]


def answer(client, attempt_id, question, option_index, user_id="user-1"):
    return client.post(
        f"/api/attempts/{attempt_id}/answers",
        json={"questionId": question.id, "selectedAnswerId": question.options[option_index].id},
        headers=bearer(user_id),
    )


class TestGetQuiz:

    def test_returns_questions_and_options(self, client, library):
        quiz = library.add_quiz("user-2", title="Cell Biology", question_count=3)

        response = client.get(f"/api/quizzes/{quiz.id}", headers=bearer())

        assert response.status_code == 200
        body = response.json()
        assert body["title"] == "Cell Biology"
        assert body["visibility"] == "public"
        assert len(body["questions"]) == 3
        first = body["questions"][0]
        assert first["topic_title"] == "Biology"
        assert [o["is_correct"] for o in first["options"]] == [True, False, False, False]

    def test_not_found(self, client):
        response = client.get(f"/api/quizzes/{uuid.uuid4()}", headers=bearer())
        assert response.status_code == 404
        assert response.json() == {"error": "Quiz not found"}

    def test_malformed_id(self, client):
        response = client.get("/api/quizzes/not-a-uuid", headers=bearer())
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid Quiz ID format"}

    def test_private_quiz_hidden_from_others(self, client, library):
        quiz = library.add_quiz("user-2", visibility="private")

        assert client.get(f"/api/quizzes/{quiz.id}", headers=bearer("user-1")).status_code == 404
        assert client.get(f"/api/quizzes/{quiz.id}", headers=bearer("user-2")).status_code == 200

    def test_requires_authentication(self, client, library):
        quiz = library.add_quiz("user-1")
        assert client.get(f"/api/quizzes/{quiz.id}").status_code == 401


class TestListQuizzes:

    def test_lists_only_own_quizzes(self, client, library):
        mine = {library.add_quiz("user-1", title="A").id, library.add_quiz("user-1", title="B").id}
        library.add_quiz("user-2", title="C")

        response = client.get("/api/quizzes", headers=bearer())

        assert response.status_code == 200
        assert {q["id"] for q in response.json()} == mine

    def test_empty_list(self, client):
        assert client.get("/api/quizzes", headers=bearer()).json() == []


class TestDeleteQuiz:

    def test_owner_deletes(self, client, library, notifier):
        quiz = library.add_quiz("user-1", title="Old Quiz")

        response = client.delete(f"/api/quizzes/{quiz.id}", headers=bearer())

        assert response.status_code == 204
        assert quiz.id not in library.quizzes
        event = notifier.events[-1]
        assert event.title == "Quiz Deleted"
        assert event.description == "Old Quiz"

    def test_other_user_forbidden(self, client, library, notifier):
        quiz = library.add_quiz("user-2")

        response = client.delete(f"/api/quizzes/{quiz.id}", headers=bearer("user-1"))

        assert response.status_code == 403
        assert quiz.id in library.quizzes
        assert notifier.events == []

    def test_missing_quiz(self, client):
        assert client.delete(f"/api/quizzes/{uuid.uuid4()}", headers=bearer()).status_code == 404


class TestAttemptLifecycle:

    def test_answer_and_finish(self, client, library):
        quiz = library.add_quiz("user-2", question_count=3)
        attempt_id = start_attempt(client, quiz)

        assert answer(client, attempt_id, quiz.questions[0], 0).status_code == 200
        assert answer(client, attempt_id, quiz.questions[1], 2).status_code == 200

        response = client.post(f"/api/attempts/{attempt_id}/finish", headers=bearer())

        assert response.status_code == 200
        assert response.json() == {"message": "Quiz attempt finished successfully!", "score": 1}

    def test_answer_replaced_not_duplicated(self, client, library):
        quiz = library.add_quiz("user-1")
        attempt_id = start_attempt(client, quiz)

        answer(client, attempt_id, quiz.questions[0], 3)
        answer(client, attempt_id, quiz.questions[0], 0)

        body = client.get(f"/api/attempts/{attempt_id}", headers=bearer()).json()
        assert len(body["answers"]) == 1
        assert body["answers"][0]["is_correct"] is True
        assert body["end_time"] is None

    def test_get_attempt_of_other_user_forbidden(self, client, library):
        quiz = library.add_quiz("user-1")
        attempt_id = start_attempt(client, quiz, user_id="user-1")

        response = client.get(f"/api/attempts/{attempt_id}", headers=bearer("user-2"))

        assert response.status_code == 403

    def test_unknown_attempt(self, client):
        assert client.get(f"/api/attempts/{uuid.uuid4()}", headers=bearer()).status_code == 404

    def test_attempt_on_missing_quiz(self, client):
        response = client.post(f"/api/quizzes/{uuid.uuid4()}/attempts", headers=bearer())
        assert response.status_code == 404

    def test_answer_from_another_question_rejected(self, client, library):
        quiz = library.add_quiz("user-1")
        attempt_id = start_attempt(client, quiz)

        response = client.post(
            f"/api/attempts/{attempt_id}/answers",
            json={"questionId": quiz.questions[0].id, "selectedAnswerId": quiz.questions[1].options[0].id},
            headers=bearer(),
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid selected answer ID"}

    def test_malformed_answer_body(self, client, library):
        quiz = library.add_quiz("user-1")
        attempt_id = start_attempt(client, quiz)

        response = client.post(
            f"/api/attempts/{attempt_id}/answers",
            json={"questionId": "nope"},
            headers=bearer(),
        )

        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid request body")

    def test_finished_attempt_is_closed(self, client, library):
        quiz = library.add_quiz("user-1")
        attempt_id = start_attempt(client, quiz)
        client.post(f"/api/attempts/{attempt_id}/finish", headers=bearer())

        assert answer(client, attempt_id, quiz.questions[0], 0).status_code == 409
        second = client.post(f"/api/attempts/{attempt_id}/finish", headers=bearer())
        assert second.status_code == 409
        assert second.json() == {"error": "This quiz attempt has already been finished"}

    def test_finish_notifies(self, client, library, notifier):
        quiz = library.add_quiz("user-1")
        attempt_id = start_attempt(client, quiz)
        client.post(f"/api/attempts/{attempt_id}/finish", headers=bearer())

        assert [e.title for e in notifier.events] == ["Quiz Attempt Started", "Quiz Attempt Finished"]
        assert notifier.events[-1].fields["Attempt ID"] == attempt_id


class TestListAttempts:

    def test_lists_own_attempts_with_quiz_names(self, client, library):
        quiz = library.add_quiz("user-2", title="Genetics", question_count=5)
        attempt_id = start_attempt(client, quiz)
        start_attempt(client, quiz, user_id="user-3")

        response = client.get("/api/attempts", headers=bearer())

        assert response.status_code == 200
        [row] = response.json()
        assert row["attempt_id"] == attempt_id
        assert row["quiz_name"] == "Genetics"
        assert row["total_questions"] == 5
        assert row["score"] is None


class TestEndpointLabels:

    @pytest.mark.parametrize("path,expected", [
        ("/api/quizzes/generate", "/api/quizzes/generate"),
        ("/api/quizzes", "/api/quizzes"),
        ("/api/quizzes/3f2c9a4e-0000-4000-8000-000000000000", "/api/quizzes/:quiz_id"),
        ("/api/quizzes/3f2c9a4e-0000-4000-8000-000000000000/attempts", "/api/quizzes/:quiz_id/attempts"),
        ("/api/attempts/9a1b/finish", "/api/attempts/:attempt_id/finish"),
        ("/api/unknown/thing", "other"),
        ("/", "other"),
    ])
    def test_normalize(self, path, expected):
        assert normalize_endpoint(path) == expected
