"""
Tests for the HTTP surface

The app is built without its lifespan; collaborators are swapped in through
dependency overrides so no database, model or network is touched.
"""

import asyncio
import io
import json
import random

import pytest
from fastapi import UploadFile
from fastapi.testclient import TestClient

from config import config
from generation.orchestrator import PipelineSettings, QuizPipeline
from server import auth
from server.dependencies import get_db, get_quiz_service
from server.main import create_app
from server.routes.quizzes import generate_quiz
from server.services.quiz_generation import QuizGenerationService

from conftest import FakeModel, FakeTranscripts, InMemoryQuizStore, RecordingNotifier, make_client, quiz_json

VIDEO_URL = "https://youtu.be/dQw4w9WgXcQ"


class FakeDatabase:
    def __init__(self, healthy=True):
        self.healthy = healthy

    async def ping(self):
        if not self.healthy:
            raise OSError("connection refused")
        return True


@pytest.fixture
def jwt_secret():
    auth.reset_jwt()
    auth.init_jwt("test-secret")
    yield
    auth.reset_jwt()


@pytest.fixture
def store():
    return InMemoryQuizStore()


@pytest.fixture
def client(jwt_secret, store, tmp_path):
    model = FakeModel(responder=lambda parts, sampling: quiz_json(4, title="Photosynthesis"))
    service = QuizGenerationService(
        QuizPipeline(make_client(model), settings=PipelineSettings(), rng=random.Random(1)),
        store,
        FakeTranscripts({VIDEO_URL: "chlorophyll absorbs light"}),
        RecordingNotifier(),
        temp_dir=str(tmp_path),
    )
    app = create_app(use_lifespan=False)
    app.dependency_overrides[get_quiz_service] = lambda: service
    app.dependency_overrides[get_db] = lambda: FakeDatabase()
    return TestClient(app)


def bearer(user_id="user-1"):
    return {"Authorization": f"Bearer {auth.generate_access_token(user_id)}"}


class TestGenerateQuiz:

    def test_generates_quiz(self, client, store):
        response = client.post(
            "/api/quizzes/generate",
            files=[("files", ("notes.pdf", b"plants make sugar", "application/pdf"))],
            data={"video_urls": [VIDEO_URL]},
            headers=bearer(),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Quiz generated successfully!"
        assert store.committed["quizzes"] == [(body["quizId"], "user-1", "Photosynthesis")]
        assert len(store.committed["materials"]) == 2
        assert response.headers["X-Request-ID"]

    def test_requires_authentication(self, client, store):
        response = client.post(
            "/api/quizzes/generate",
            files=[("files", ("notes.pdf", b"plants", "application/pdf"))],
        )

        assert response.status_code == 401
        assert response.json() == {"error": "User not authenticated"}
        assert store.committed is None

    def test_rejects_invalid_token(self, client):
        response = client.post(
            "/api/quizzes/generate",
            data={"video_urls": [VIDEO_URL]},
            headers={"Authorization": "Bearer not-a-token"},
        )
        assert response.status_code == 401

    def test_no_content(self, client):
        response = client.post(
            "/api/quizzes/generate",
            data={"video_urls": ["https://youtu.be/missing0000"]},
            headers=bearer(),
        )

        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid request: No valid content provided")

    def test_oversized_upload_rejected(self, client, store, monkeypatch):
        monkeypatch.setattr(config, "MAX_UPLOAD_BYTES", 4)
        response = client.post(
            "/api/quizzes/generate",
            files=[("files", ("notes.pdf", b"plants make sugar", "application/pdf"))],
            headers=bearer(),
        )

        assert response.status_code == 400
        assert response.json()["error"].startswith("Failed to process uploaded files: file notes.pdf exceeds 4 bytes")
        assert store.committed is None

    def test_oversized_upload_rejected_before_reading(self, monkeypatch):
        monkeypatch.setattr(config, "MAX_UPLOAD_BYTES", 4)

        class UnreadableUpload(UploadFile):
            async def read(self, size=-1):
                raise AssertionError("oversized upload was read")

        upload = UnreadableUpload(io.BytesIO(b"plants make sugar"), size=17, filename="notes.pdf")
        response = asyncio.run(generate_quiz(files=[upload], video_urls=None, user_id="user-1", service=None))

        assert response.status_code == 400
        assert "exceeds 4 bytes" in json.loads(response.body)["error"]


class TestMonitoring:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["checks"]["database"] == {"status": "healthy"}

    def test_health_reports_database_failure(self, client):
        client.app.dependency_overrides[get_db] = lambda: FakeDatabase(healthy=False)
        body = client.get("/health").json()
        assert body["status"] == "unhealthy"
        assert body["checks"]["database"]["status"] == "unhealthy"

    def test_prometheus_metrics(self, client):
        client.get("/health")
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "quizbuilder_api_requests_total" in response.text
