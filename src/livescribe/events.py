"""
Event and state models shared by the capture pipeline, the summary worker and the bus.

Events are frozen pydantic models. Once published they are never mutated, so the same
instance can be handed to every subscriber without copying.
"""

import time
from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class EventKind(StrEnum):
  """Kinds of events broadcast to subscribers."""

  STATUS = "status"
  TRANSCRIPT_PARTIAL = "transcript-partial"
  TRANSCRIPT_FINAL = "transcript-final"
  SUMMARY_START = "summary-start"
  SUMMARY_TOKEN = "summary-token"
  SUMMARY_END = "summary-end"
  ERROR = "error"


class CaptureStatus(StrEnum):
  """Payloads carried by ``status`` events."""

  LISTENING = "listening"
  STOPPED = "stopped"
  INITIALISING = "initialising"


class Event(BaseModel):
  """A single immutable pipeline event."""

  model_config = ConfigDict(frozen=True)

  kind: EventKind
  payload: str = ""
  timestamp: float = Field(default_factory=time.time)

  @classmethod
  def status(cls, status: CaptureStatus) -> "Event":
    return cls(kind=EventKind.STATUS, payload=status.value)

  @classmethod
  def error(cls, message: str) -> "Event":
    return cls(kind=EventKind.ERROR, payload=message)

  def to_json(self) -> str:
    """Serialize to the wire shape ``{kind, payload, timestamp}``."""
    return self.model_dump_json()


@dataclass
class PipelineState:
  """
  Process-wide state of the single capture loop.

  Only the capture pipeline writes these flags. ``ready`` is true exactly while the audio
  device is open and the recognizer is initialised; ``running`` is true from ``start()``
  until the supervisor exits.
  """

  running: bool = False
  ready: bool = False
