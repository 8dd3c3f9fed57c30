"""
Exception taxonomy for the live transcription pipeline.

Capture-side errors (device, engine) end the current session and are recovered by the
capture supervisor. Summarizer-side errors are local to one sentence and are reported to
subscribers as ``error`` events.
"""


class LivescribeError(Exception):
  """Base class for all livescribe errors."""


class DeviceUnavailableError(LivescribeError):
  """The audio device is busy, missing, or does not support the requested format."""


class EngineError(LivescribeError):
  """The speech recognizer failed to initialise or failed mid-stream."""


class SummarizerUnavailableError(LivescribeError):
  """The summarization backend could not be reached, timed out, or answered non-2xx."""


class MalformedResponseError(LivescribeError):
  """The summarization backend answered with nothing that could be parsed."""


class SubscriberClosedError(LivescribeError):
  """A subscriber sink can no longer accept events."""
