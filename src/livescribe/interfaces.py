"""
Protocol interfaces for the external collaborators of the live pipeline.

Audio devices, recognition engines and summarization backends are reached only through
these contracts, using Python's Protocol system for structural typing. Concrete adapters
live in ``livescribe.audio``, ``livescribe.recognition`` and ``livescribe.summarizer``.
"""

from collections.abc import AsyncIterator, Callable
from typing import Protocol

from livescribe.events import Event


class AudioSource(Protocol):
  """
  Protocol for a blocking PCM audio source.

  Frames are mono, 16-bit signed little-endian at the sample rate the source was opened
  with. Calls block, so the capture pipeline runs them in a worker thread.
  """

  def read(self, size: int) -> bytes:
    """
    Read up to ``size`` bytes of audio.

    :returns:
        Raw PCM bytes. An empty result means no data was available yet.
    """
    ...

  def close(self) -> None:
    """Release the device. Safe to call more than once."""
    ...


class Recognizer(Protocol):
  """
  Protocol for a stateful speech recognition engine.

  Results are the engine's raw JSON documents; text extraction is done by the caller.
  """

  def accept_waveform(self, frame: bytes) -> bool:
    """
    Feed one frame of audio.

    :returns:
        True when the frame completed an utterance, False while it is still in progress.
    """
    ...

  def result(self) -> str:
    """Raw JSON of the completed utterance, e.g. ``{"text": "..."}``."""
    ...

  def partial_result(self) -> str:
    """Raw JSON of the current hypothesis, e.g. ``{"partial": "..."}``."""
    ...

  def close(self) -> None:
    """Release the engine. Safe to call more than once."""
    ...


class Summarizer(Protocol):
  """Protocol for a (possibly streaming) text generation backend."""

  def generate(self, prompt: str) -> AsyncIterator[str]:
    """
    Generate text for ``prompt``.

    :returns:
        An async iterator of text chunks; non-streaming backends yield exactly once.
    :raises SummarizerUnavailableError: on network errors, timeouts or non-2xx answers.
    :raises MalformedResponseError: when nothing in the answer could be parsed.
    """
    ...


class EventSink(Protocol):
  """Protocol for the outbound side of a subscriber."""

  def send(self, event: Event) -> None:
    """
    Attempt to deliver one event without blocking.

    :raises Exception: any exception means the subscriber is gone or too slow.
    """
    ...

  def close(self) -> None:
    """Signal that no further events will be delivered."""
    ...


AudioSourceFactory = Callable[[int, int], AudioSource]
"""Opens an audio source given (sample_rate, frame_size)."""

RecognizerFactory = Callable[[int], Recognizer]
"""Opens a recognizer for the given sample rate."""
