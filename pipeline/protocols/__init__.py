"""Pipeline Protocols - Type interfaces for dependency injection"""

from pipeline.protocols.collaborators import (
    AttemptStore,
    NotificationEvent,
    Notifier,
    NullNotifier,
    QuizLibrary,
    QuizStore,
    TranscriptFetcher,
    UserContext,
)
from pipeline.protocols.metrics import MetricsCollector, NullMetrics

__all__ = [
    "AttemptStore",
    "MetricsCollector",
    "NullMetrics",
    "NotificationEvent",
    "Notifier",
    "NullNotifier",
    "QuizLibrary",
    "QuizStore",
    "TranscriptFetcher",
    "UserContext",
]
