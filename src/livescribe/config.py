import os

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator, validate_call
from pydantic.types import FilePath

from livescribe.constants import (
  DEFAULT_FRAME_SIZE,
  DEFAULT_SAMPLE_RATE,
  DEFAULT_SUMMARY_INSTRUCTION,
  DEFAULT_SUMMARY_SENTINEL,
)
from livescribe.logs import get_logger

logger = get_logger("cfg")


class AudioConfig(BaseModel):
  """Configuration for the capture device."""

  sample_rate: int = Field(default=DEFAULT_SAMPLE_RATE, gt=0)
  """Capture sample rate in Hz. Audio is always mono, 16-bit signed little-endian."""

  frame_size: int = Field(default=DEFAULT_FRAME_SIZE, gt=0)
  """Number of bytes pulled from the device per read."""

  device: str | int | None = None
  """Input device name or index, or None for the system default."""

  @field_validator("frame_size")
  @classmethod
  def validate_whole_samples(cls, value: int) -> int:
    """Frames must hold a whole number of 16-bit samples."""
    if value % 2:
      raise ValueError(f"frame_size ({value}) must be a multiple of 2 bytes")
    return value


class RecognizerConfig(BaseModel):
  """Configuration for the speech recognition engine."""

  model_path: str = "model/vosk-model"
  """Path to the recognizer model directory."""


class CaptureConfig(BaseModel):
  """Configuration for the capture supervisor."""

  restart_delay: float = Field(default=3.0, ge=0.0)
  """Seconds to wait after a failed session before opening a new one."""

  autostart: bool = True
  """Start capturing at boot instead of waiting for the first subscriber."""


class SummarizerConfig(BaseModel):
  """Configuration for the summarization backend and the summary worker."""

  url: str = "http://localhost:11434/api/generate"
  """Endpoint accepting {model, prompt, stream} POST requests."""

  model: str = "gemma3:4b"
  """Model identifier sent with each request."""

  stream: bool = False
  """Request newline-delimited streaming responses and forward each chunk."""

  read_timeout: float = Field(default=60.0, gt=0.0)
  """Upper bound in seconds on waiting for response data."""

  instruction: str = DEFAULT_SUMMARY_INSTRUCTION
  """Fixed instruction placed at the top of every prompt."""

  sentinel: str = DEFAULT_SUMMARY_SENTINEL
  """Answer meaning "nothing to summarize"; never forwarded to subscribers."""

  context_budget: int = Field(default=600, gt=0)
  """Character budget of prior summaries included in each prompt."""

  max_pending: int = Field(default=32, gt=0)
  """Sentences waiting for summarization beyond this count are dropped."""

  @model_validator(mode="after")
  def validate_sentinel(self) -> "SummarizerConfig":
    """The sentinel has to be something a model can actually answer with."""
    if not self.sentinel.strip():
      raise ValueError("sentinel must not be blank")
    return self


class ServerConfig(BaseModel):
  """Configuration for the subscriber endpoint."""

  host: str = "0.0.0.0"
  port: int = Field(default=8080, gt=0, lt=65536)
  subscriber_queue_size: int = Field(default=256, gt=0)
  """Events buffered per subscriber before it is considered too slow and dropped."""


class LivescribeConfig(BaseModel):
  """Top-level livescribe configuration."""

  audio: AudioConfig = Field(default_factory=AudioConfig)
  recognizer: RecognizerConfig = Field(default_factory=RecognizerConfig)
  capture: CaptureConfig = Field(default_factory=CaptureConfig)
  summarizer: SummarizerConfig = Field(default_factory=SummarizerConfig)
  server: ServerConfig = Field(default_factory=ServerConfig)

  def pretty_print(self) -> None:
    """Log every effective configuration value, defaults included, at INFO level."""
    logger.info("=" * 60)
    logger.info("LIVESCRIBE CONFIGURATION")
    logger.info("=" * 60)

    logger.info("AUDIO SETTINGS:")
    logger.info(f"  Sample Rate: {self.audio.sample_rate}")
    logger.info(f"  Frame Size: {self.audio.frame_size} bytes")
    logger.info(f"  Device: {self.audio.device if self.audio.device is not None else 'default'}")

    logger.info("RECOGNIZER SETTINGS:")
    logger.info(f"  Model Path: {self.recognizer.model_path}")

    logger.info("CAPTURE SETTINGS:")
    logger.info(f"  Restart Delay: {self.capture.restart_delay}s")
    logger.info(f"  Autostart: {self.capture.autostart}")

    logger.info("SUMMARIZER SETTINGS:")
    logger.info(f"  URL: {self.summarizer.url}")
    logger.info(f"  Model: {self.summarizer.model}")
    logger.info(f"  Stream: {self.summarizer.stream}")
    logger.info(f"  Read Timeout: {self.summarizer.read_timeout}s")
    logger.info(f"  Sentinel: {self.summarizer.sentinel}")
    logger.info(f"  Context Budget: {self.summarizer.context_budget} chars")
    logger.info(f"  Max Pending: {self.summarizer.max_pending}")

    logger.info("SERVER SETTINGS:")
    logger.info(f"  Listen: {self.server.host}:{self.server.port}")
    logger.info(f"  Subscriber Queue Size: {self.server.subscriber_queue_size}")

    logger.info("=" * 60)


@validate_call
def load_config_from_file(config_path: FilePath) -> LivescribeConfig:
  """Load and validate livescribe configuration from a YAML file."""

  logger.info("Loading livescribe configuration", path=str(config_path))

  try:
    with open(config_path, "r", encoding="utf-8") as file:
      config_data = yaml.safe_load(file)

  except yaml.YAMLError as e:
    raise ValueError(f"Invalid YAML in configuration file: {e}") from e
  except Exception as e:
    raise ValueError(f"Error reading configuration file: {e}") from e

  if config_data is None:
    raise ValueError("Configuration file is empty")

  if not isinstance(config_data, dict):
    raise ValueError("Configuration file must contain a YAML dictionary")

  config = LivescribeConfig.model_validate(config_data)
  config.pretty_print()

  return config


def get_env_int(key: str, default: int) -> int:
  """Get an int from an environment variable."""
  return int(os.getenv(key, str(default)))


def get_env_bool(key: str, default: bool) -> bool:
  """Get a bool from an environment variable."""
  return os.getenv(key, str(default)).lower() in ("true", "1", "yes", "on")
