"""
livescribe: live microphone transcription with rolling summaries.

Audio is captured and recognized by a self-healing capture loop, finalized sentences are
summarized off the capture path, and every event is fanned out to live subscribers.
"""

from livescribe.bus import EventBus, QueueSink, Subscriber
from livescribe.config import LivescribeConfig, load_config_from_file
from livescribe.context import SummaryContext
from livescribe.errors import (
  DeviceUnavailableError,
  EngineError,
  LivescribeError,
  MalformedResponseError,
  SubscriberClosedError,
  SummarizerUnavailableError,
)
from livescribe.events import CaptureStatus, Event, EventKind, PipelineState
from livescribe.pipeline import CapturePipeline, SupervisorState
from livescribe.service import LiveTranscriptionService
from livescribe.worker import SummaryWorker

__all__ = [
  "CapturePipeline",
  "CaptureStatus",
  "DeviceUnavailableError",
  "EngineError",
  "Event",
  "EventBus",
  "EventKind",
  "LiveTranscriptionService",
  "LivescribeConfig",
  "LivescribeError",
  "MalformedResponseError",
  "PipelineState",
  "QueueSink",
  "Subscriber",
  "SubscriberClosedError",
  "SummarizerUnavailableError",
  "SummaryContext",
  "SummaryWorker",
  "SupervisorState",
  "load_config_from_file",
]
