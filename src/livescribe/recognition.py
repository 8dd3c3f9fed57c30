"""
Vosk speech recognition engine adapter.

The model is loaded once per process and shared; each capture session gets its own
recognizer over it.
"""

import threading
from pathlib import Path

import vosk

from livescribe.errors import EngineError
from livescribe.interfaces import Recognizer
from livescribe.logs import get_logger

logger = get_logger("capture/vosk")


class VoskRecognizer(Recognizer):
  """Recognizer backed by ``vosk.KaldiRecognizer``."""

  def __init__(self, model: vosk.Model, sample_rate: int) -> None:
    try:
      self._recognizer: vosk.KaldiRecognizer | None = vosk.KaldiRecognizer(model, sample_rate)
    except Exception as e:
      raise EngineError(f"could not create recognizer at {sample_rate} Hz: {e}") from e

  def _engine(self) -> vosk.KaldiRecognizer:
    if self._recognizer is None:
      raise EngineError("recognizer is closed")
    return self._recognizer

  def accept_waveform(self, frame: bytes) -> bool:
    try:
      return bool(self._engine().AcceptWaveform(frame))
    except EngineError:
      raise
    except Exception as e:
      raise EngineError(f"recognizer rejected audio: {e}") from e

  def result(self) -> str:
    return self._engine().Result()

  def partial_result(self) -> str:
    return self._engine().PartialResult()

  def close(self) -> None:
    self._recognizer = None


class VoskEngine:
  """Lazily loads a Vosk model and opens recognizers for the capture pipeline."""

  def __init__(self, model_path: str) -> None:
    self.model_path = model_path
    self._model: vosk.Model | None = None
    self._lock = threading.Lock()

  def _load_model(self) -> vosk.Model:
    with self._lock:
      if self._model is None:
        resolved = Path(self.model_path).expanduser().resolve()
        if not resolved.is_dir():
          raise EngineError(f"recognizer model not found at {resolved}")

        logger.info("Loading recognizer model", path=str(resolved))
        try:
          self._model = vosk.Model(str(resolved))
        except Exception as e:
          raise EngineError(f"could not load recognizer model from {resolved}: {e}") from e
      return self._model

  def open_recognizer(self, sample_rate: int) -> VoskRecognizer:
    """Recognizer factory used by the capture pipeline."""
    return VoskRecognizer(self._load_model(), sample_rate)
