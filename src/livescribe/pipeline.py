"""
Supervised capture → recognize loop.

The supervisor alternates between two states until it is told to stop:

  session  : device and recognizer open, frames flowing, events published
  backoff  : the previous session failed; wait ``restart_delay`` then open a new one

A failing session publishes ``status=stopped`` followed by ``error=<message>``, releases
its handles and hands control back to the supervisor. Nothing in here terminates the
process; only ``stop()`` ends the loop.
"""

import asyncio
import threading
from collections.abc import Awaitable, Callable
from enum import StrEnum

from livescribe.bus import EventBus
from livescribe.constants import DEFAULT_FRAME_SIZE, DEFAULT_SAMPLE_RATE
from livescribe.events import CaptureStatus, Event, EventKind, PipelineState
from livescribe.interfaces import AudioSource, AudioSourceFactory, Recognizer, RecognizerFactory
from livescribe.logs import get_logger
from livescribe.utils import extract_text_field
from livescribe.worker import SummaryWorker

LOG_EVERY_N_FRAMES = 500

FrameOutcome = tuple[bool, str] | None
"""(utterance completed, raw engine JSON), or None for an empty read."""


class SupervisorState(StrEnum):
  IDLE = "idle"
  SESSION = "session"
  BACKOFF = "backoff"
  STOPPED = "stopped"


def extract_final_text(raw: str) -> str:
  return extract_text_field(raw, "text")


def extract_partial_text(raw: str) -> str:
  return extract_text_field(raw, "partial") or extract_text_field(raw, "text")


class CapturePipeline:
  """
  Owns the audio device and recognizer, and turns their output into events.

  Blocking device reads and recognizer calls run in worker threads, so the event loop
  (and with it subscriber delivery and summarization) is never blocked by the hardware.
  The capture loop itself never waits on the network: finalized sentences are handed to
  the summary worker with a non-blocking enqueue.
  """

  def __init__(
    self,
    bus: EventBus,
    open_source: AudioSourceFactory,
    open_recognizer: RecognizerFactory,
    worker: SummaryWorker | None = None,
    state: PipelineState | None = None,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
    frame_size: int = DEFAULT_FRAME_SIZE,
    restart_delay: float = 3.0,
    sleep: Callable[[float], Awaitable[None]] | None = None,
  ) -> None:
    """
    :param open_source: Opens the audio device for (sample_rate, frame_size).
    :param open_recognizer: Opens a recognizer for sample_rate.
    :param worker: Receives finalized sentences; summarization is disabled when None.
    :param state: Shared state object written by this pipeline.
    :param sleep: Backoff implementation; defaults to a wait that ``stop()`` interrupts.
    """
    self.bus = bus
    self.open_source = open_source
    self.open_recognizer = open_recognizer
    self.worker = worker
    self.state = state if state is not None else PipelineState()
    self.sample_rate = sample_rate
    self.frame_size = frame_size
    self.restart_delay = restart_delay
    self.logger = get_logger("capture")

    self.supervisor_state = SupervisorState.IDLE
    self._sleep = sleep
    self._start_lock = threading.Lock()
    self._started = False
    self._stop_requested = False
    self._stop_event = asyncio.Event()
    self._task: asyncio.Task | None = None

    # Statistics
    self.sessions_started = 0
    self.restarts = 0
    self.frames_read = 0

  def start(self) -> bool:
    """
    Start the supervised loop on the running event loop, exactly once.

    :returns: True if this call started the loop, False if it was already started.
    """
    asyncio.get_running_loop()
    with self._start_lock:
      if self._started:
        return False
      self._started = True

    self.state.running = True
    self._task = asyncio.create_task(self.run_forever())
    self._task.set_name("capture_supervisor")
    return True

  async def stop(self) -> None:
    """
    Request shutdown and wait for the loop to exit.

    The loop notices the request after the current frame read returns, then releases the
    device and the recognizer.
    """
    if not self._stop_requested:
      self.logger.info("Stopping capture pipeline")
    self._stop_requested = True
    self._stop_event.set()

    if self._task is not None:
      await self._task
      self._task = None

  async def run_forever(self) -> None:
    """Run sessions until ``stop()`` is called, backing off after each failure."""
    self.logger.info(
      "Starting capture supervisor",
      sample_rate=self.sample_rate,
      frame_size=self.frame_size,
      restart_delay=self.restart_delay,
    )

    try:
      while not self._stop_requested:
        self.supervisor_state = SupervisorState.SESSION
        try:
          await self._run_session()
        except Exception:
          if self._stop_requested:
            break

          self.supervisor_state = SupervisorState.BACKOFF
          self.restarts += 1
          self.logger.info(
            f"Restarting capture in {self.restart_delay}s", attempt=self.restarts + 1
          )
          await self._backoff(self.restart_delay)
    finally:
      self.supervisor_state = SupervisorState.STOPPED
      self.state.ready = False
      self.state.running = False
      self.logger.info(
        "Capture supervisor stopped",
        sessions=self.sessions_started,
        restarts=self.restarts,
        frames_read=self.frames_read,
      )

  async def _run_session(self) -> None:
    source: AudioSource | None = None
    recognizer: Recognizer | None = None
    self.sessions_started += 1

    try:
      if self.sessions_started > 1:
        self.logger.info("Reopening audio device", session=self.sessions_started)
      else:
        self.logger.info("Opening audio device", session=self.sessions_started)

      source = await asyncio.to_thread(self.open_source, self.sample_rate, self.frame_size)
      recognizer = await asyncio.to_thread(self.open_recognizer, self.sample_rate)

      self.state.ready = True
      self.bus.publish(Event.status(CaptureStatus.LISTENING))
      self.logger.info("Microphone ready, listening", session=self.sessions_started)

      await self._capture(source, recognizer)

    except Exception as e:
      self.state.ready = False
      self.logger.error(
        "Capture session failed",
        session=self.sessions_started,
        error=str(e),
        error_type=type(e).__name__,
      )
      self.bus.publish(Event.status(CaptureStatus.STOPPED))
      self.bus.publish(Event.error(f"Recognition stopped: {e}"))
      raise

    else:
      self.state.ready = False
      self.bus.publish(Event.status(CaptureStatus.STOPPED))

    finally:
      self._release(source, recognizer)

  async def _capture(self, source: AudioSource, recognizer: Recognizer) -> None:
    """
    Pump frames until stop is requested.

    Non-empty finals are published and handed to the worker. A partial is published only
    when it differs from the last partial published in the current utterance, so a
    recognizer repeating its hypothesis frame after frame produces one event.
    """
    last_partial = ""

    while not self._stop_requested:
      outcome = await asyncio.to_thread(self._read_and_recognize, source, recognizer)
      if outcome is None:
        continue

      self.frames_read += 1
      if self.frames_read % LOG_EVERY_N_FRAMES == 0:
        self.logger.debug("Capture progress", frames_read=self.frames_read)

      completed, raw = outcome
      if completed:
        last_partial = ""
        sentence = extract_final_text(raw)
        if sentence:
          self.logger.info("Sentence finalized", text=sentence)
          self.bus.publish(Event(kind=EventKind.TRANSCRIPT_FINAL, payload=sentence))
          if self.worker is not None:
            self.worker.enqueue(sentence)
      else:
        partial = extract_partial_text(raw)
        if partial and partial != last_partial:
          last_partial = partial
          self.bus.publish(Event(kind=EventKind.TRANSCRIPT_PARTIAL, payload=partial))

  def _read_and_recognize(self, source: AudioSource, recognizer: Recognizer) -> FrameOutcome:
    """Runs in a worker thread: pull one frame and feed it to the recognizer."""
    frame = source.read(self.frame_size)
    if not frame:
      return None
    if recognizer.accept_waveform(frame):
      return True, recognizer.result()
    return False, recognizer.partial_result()

  def _release(self, source: AudioSource | None, recognizer: Recognizer | None) -> None:
    """Best-effort release of the session's handles; failures are logged and swallowed."""
    for name, handle in (("audio source", source), ("recognizer", recognizer)):
      if handle is None:
        continue
      try:
        handle.close()
      except Exception as e:
        self.logger.warning(f"Error releasing {name}", error=str(e))

  async def _backoff(self, delay: float) -> None:
    if self._sleep is not None:
      await self._sleep(delay)
      return

    try:
      await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
    except asyncio.TimeoutError:
      pass
