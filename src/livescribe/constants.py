"""
Constants for the livescribe application.

Values without a config counterpart are fixed here; the rest are defaults for the config file.
"""

DEFAULT_SAMPLE_RATE = 16000
"""Capture sample rate in Hz."""

CHANNELS = 1
"""Capture is always mono."""

SAMPLE_WIDTH = 2
"""Bytes per sample (16-bit signed little-endian PCM)."""

DEFAULT_FRAME_SIZE = 4096
"""Bytes pulled from the device per read."""

DEFAULT_SUMMARY_SENTINEL = "NOTHING"
"""Summarizer answer meaning there was nothing worth summarizing."""

DEFAULT_SUMMARY_INSTRUCTION = (
  "Summarize only the current sentence in a few words. "
  "Use the previous summaries only to disambiguate it, never summarize them again. "
  "Answer with the summary alone, without any preamble or definition. "
  "If there is nothing to summarize, answer exactly {sentinel}."
)
"""Instruction placed at the top of every summarization prompt; {sentinel} is filled in."""

STREAM_PATH = "/api/live/stream"
STATUS_PATH = "/api/live/status"
HEALTH_PATH = "/healthz"
