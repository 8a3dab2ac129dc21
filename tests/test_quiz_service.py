"""
Tests for the request-level quiz service

Real pipeline over a scripted model, in-memory store and transcripts. Temp
files go to tmp_path so cleanup can be checked.
"""

import asyncio
import json
import os
import random

import pytest

from exceptions import RequestError
from generation.models import TokenUsage
from generation.orchestrator import PipelineSettings, QuizPipeline
from server.services.quiz_generation import QuizGenerationService, collect_sources

from conftest import (
    FakeModel,
    FakeTranscripts,
    InMemoryQuizStore,
    RecordingNotifier,
    make_client,
    question_dict,
    quiz_json,
)

VIDEO_URL = "https://youtu.be/dQw4w9WgXcQ"


def service_for(model, tmp_path, transcripts=None, store=None):
    pipeline = QuizPipeline(make_client(model), settings=PipelineSettings(), rng=random.Random(7))
    return QuizGenerationService(
        pipeline,
        store or InMemoryQuizStore(),
        transcripts or FakeTranscripts(),
        RecordingNotifier(),
        temp_dir=str(tmp_path),
    )


def always(response):
    return FakeModel(responder=lambda parts, sampling: response)


class TestCollectSources:

    def test_skips_empty_uploads_and_failed_videos(self, tmp_path):
        transcripts = FakeTranscripts({VIDEO_URL: "mitochondria produce ATP"})

        sources = asyncio.run(collect_sources(
            [("notes.pdf", b"cells"), ("empty.pdf", b"")],
            [VIDEO_URL, "", "https://youtu.be/missing0000"],
            transcripts,
            temp_dir=str(tmp_path),
        ))

        assert sources.file_names == ["notes.pdf"]
        assert sources.video_urls == [VIDEO_URL]
        assert len(sources.documents) == 2
        assert sources.documents[1].name.startswith("transcript_")
        assert transcripts.fetched == [VIDEO_URL, "https://youtu.be/missing0000"]

        sources.cleanup()
        assert os.listdir(str(tmp_path)) == []


class TestQuizGenerationService:

    def test_generates_and_persists(self, tmp_path):
        store = InMemoryQuizStore()
        service = service_for(
            always(quiz_json(3, title="Cells")),
            tmp_path,
            transcripts=FakeTranscripts({VIDEO_URL: "a transcript"}),
            store=store,
        )

        persisted = asyncio.run(service.generate("user-1", [("notes.pdf", b"cells")], [VIDEO_URL]))

        # two documents -> two chunks of three questions each
        assert persisted.question_count == 6
        assert persisted.material_count == 2
        assert store.committed["usage"] == [("user-1", TokenUsage(200, 100, 300))]
        assert os.listdir(str(tmp_path)) == []

        event = service.notifier.events[-1]
        assert event.title == "Quiz Created"
        assert event.level == "success"
        assert event.fields["quiz_id"] == persisted.quiz_id

    def test_no_usable_content(self, tmp_path):
        model = FakeModel()
        service = service_for(model, tmp_path)

        with pytest.raises(RequestError) as exc_info:
            asyncio.run(service.generate("user-1", [("empty.pdf", b"")], ["https://youtu.be/missing0000"]))

        assert exc_info.value.status_code == 400
        assert exc_info.value.to_body()["error"].startswith("Invalid request: No valid content provided")
        assert model.calls == []
        assert service.notifier.events[-1].level == "warning"

    def test_generation_failure_bills_usage_and_cleans_up(self, tmp_path):
        store = InMemoryQuizStore()
        service = service_for(always("I cannot help with that."), tmp_path, store=store)

        with pytest.raises(RequestError) as exc_info:
            asyncio.run(service.generate("user-1", [("notes.pdf", b"cells")], []))

        assert exc_info.value.status_code == 500
        assert exc_info.value.to_body()["error"].startswith("Failed to generate quiz content: ")
        # three billed attempts
        assert store.committed["usage"] == [("user-1", TokenUsage(300, 150, 450))]
        assert store.committed["quizzes"] == []
        assert os.listdir(str(tmp_path)) == []
        assert service.notifier.events[-1].level == "error"

    def test_persistence_failure(self, tmp_path):
        store = InMemoryQuizStore()
        bad = question_dict(text="two correct?")
        bad["options"][1]["is_correct"] = True
        service = service_for(always(json.dumps({"title": "T", "questions": [bad]})), tmp_path, store=store)

        with pytest.raises(RequestError) as exc_info:
            asyncio.run(service.generate("user-1", [("notes.pdf", b"cells")], []))

        assert exc_info.value.to_body()["error"].startswith("Failed to save quiz: ")
        assert store.rolled_back
        assert store.committed is None
        assert os.listdir(str(tmp_path)) == []
