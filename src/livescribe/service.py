"""
Composition root for the live transcription system.

Wires one capture pipeline, one summary worker and one event bus together, and exposes the
operations the serving layer needs: subscribe, status and shutdown.
"""

from collections.abc import Awaitable, Callable
from typing import TypedDict

from livescribe.bus import EventBus, Subscriber
from livescribe.config import LivescribeConfig
from livescribe.errors import SubscriberClosedError
from livescribe.events import CaptureStatus, Event, PipelineState
from livescribe.interfaces import AudioSourceFactory, RecognizerFactory, Summarizer
from livescribe.logs import get_logger
from livescribe.pipeline import CapturePipeline
from livescribe.worker import SummaryWorker


class StatusDict(TypedDict):
  listening: bool


class HealthDict(TypedDict):
  status: str
  listening: bool
  running: bool
  supervisor: str
  subscribers: int
  sessions: int
  restarts: int
  summaries_pending: int


class LiveTranscriptionService:
  """
  Owns the single capture loop shared by every subscriber.

  The loop starts at boot when ``capture.autostart`` is set, otherwise on the first
  subscription. Either way it starts at most once.
  """

  def __init__(
    self,
    config: LivescribeConfig,
    open_source: AudioSourceFactory,
    open_recognizer: RecognizerFactory,
    summarizer: Summarizer,
    sleep: Callable[[float], Awaitable[None]] | None = None,
  ) -> None:
    self.config = config
    self.summarizer = summarizer
    self.state = PipelineState()
    self.bus = EventBus(queue_size=config.server.subscriber_queue_size)
    self.worker = SummaryWorker(self.bus, summarizer, config.summarizer)
    self.pipeline = CapturePipeline(
      bus=self.bus,
      open_source=open_source,
      open_recognizer=open_recognizer,
      worker=self.worker,
      state=self.state,
      sample_rate=config.audio.sample_rate,
      frame_size=config.audio.frame_size,
      restart_delay=config.capture.restart_delay,
      sleep=sleep,
    )
    self.logger = get_logger("service")
    self._shutting_down = False

  @classmethod
  def from_config(cls, config: LivescribeConfig) -> "LiveTranscriptionService":
    """Build the service over the real microphone, Vosk and Ollama adapters."""
    from livescribe.audio import open_microphone
    from livescribe.recognition import VoskEngine
    from livescribe.summarizer import OllamaSummarizer

    engine = VoskEngine(config.recognizer.model_path)
    device = config.audio.device

    def open_source(sample_rate: int, frame_size: int):
      return open_microphone(sample_rate, frame_size, device)

    return cls(
      config,
      open_source=open_source,
      open_recognizer=engine.open_recognizer,
      summarizer=OllamaSummarizer.from_config(config.summarizer),
    )

  async def boot(self) -> None:
    """Start background work. Must be called from the running event loop."""
    self.worker.start()
    if self.config.capture.autostart:
      self.ensure_started()
    else:
      self.logger.info("Autostart disabled, capture begins with the first subscriber")

  def ensure_started(self) -> None:
    """
    Start the summary worker and the capture loop if they are not running.

    :raises SubscriberClosedError: once shutdown has begun.
    """
    if self._shutting_down:
      raise SubscriberClosedError("service is shutting down")
    self.worker.start()
    if self.pipeline.start():
      self.logger.info("Capture loop started")

  def subscribe(self) -> Subscriber:
    """
    Register a new subscriber and greet it with the current capture status.

    Starts the capture loop if it is not running yet.

    :raises SubscriberClosedError: once shutdown has begun.
    """
    self.ensure_started()
    subscriber = self.bus.subscribe()
    greeting = CaptureStatus.LISTENING if self.state.ready else CaptureStatus.INITIALISING
    self.bus.send_to(subscriber, Event.status(greeting))
    return subscriber

  def unsubscribe(self, subscriber: Subscriber) -> None:
    self.bus.unsubscribe(subscriber)

  def status(self) -> StatusDict:
    return {"listening": self.state.ready}

  def health(self) -> HealthDict:
    return {
      "status": "ok",
      "listening": self.state.ready,
      "running": self.state.running,
      "supervisor": self.pipeline.supervisor_state.value,
      "subscribers": self.bus.subscriber_count,
      "sessions": self.pipeline.sessions_started,
      "restarts": self.pipeline.restarts,
      "summaries_pending": self.worker.pending,
    }

  async def shutdown(self) -> None:
    """Stop capture, let the in-flight summary finish, then complete every subscriber."""
    self._shutting_down = True
    self.logger.info("Shutting down live transcription service")
    await self.pipeline.stop()
    await self.worker.stop()
    self.bus.close()

    close = getattr(self.summarizer, "close", None)
    if close is not None:
      try:
        await close()
      except Exception:
        self.logger.exception("Error closing summarizer")

    self.logger.info("Live transcription service stopped")
