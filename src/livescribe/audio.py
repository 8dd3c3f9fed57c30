"""
Microphone capture through sounddevice (PortAudio).
"""

import sounddevice as sd

from livescribe.constants import CHANNELS, SAMPLE_WIDTH
from livescribe.errors import DeviceUnavailableError
from livescribe.interfaces import AudioSource
from livescribe.logs import get_logger

DTYPE = "int16"


class MicrophoneSource(AudioSource):
  """
  Blocking PCM reader over a sounddevice raw input stream.

  Audio is captured mono, 16-bit signed little-endian, at the requested sample rate. Reads
  block until a full frame is available; input overflows are logged and the data is kept.
  """

  def __init__(self, sample_rate: int, frame_size: int, device: str | int | None = None) -> None:
    self.sample_rate = sample_rate
    self.frame_size = frame_size
    self.device = device
    self.logger = get_logger("capture/mic")
    self._stream: sd.RawInputStream | None = None
    self.overflows = 0

  def open(self) -> "MicrophoneSource":
    """Check the format is supported and start the input stream."""
    try:
      sd.check_input_settings(
        device=self.device, channels=CHANNELS, dtype=DTYPE, samplerate=self.sample_rate
      )
    except (sd.PortAudioError, ValueError) as e:
      raise DeviceUnavailableError(
        f"microphone does not support {self.sample_rate} Hz mono 16-bit: {e}"
      ) from e

    try:
      stream = sd.RawInputStream(
        samplerate=self.sample_rate,
        blocksize=self.frame_size // SAMPLE_WIDTH,
        device=self.device,
        channels=CHANNELS,
        dtype=DTYPE,
      )
      stream.start()
    except sd.PortAudioError as e:
      raise DeviceUnavailableError(f"could not open microphone: {e}") from e

    self._stream = stream
    self.logger.info(
      "Microphone opened",
      device=self.device if self.device is not None else "default",
      sample_rate=self.sample_rate,
      frame_size=self.frame_size,
    )
    return self

  def read(self, size: int) -> bytes:
    if self._stream is None:
      raise DeviceUnavailableError("microphone is not open")

    try:
      data, overflowed = self._stream.read(size // SAMPLE_WIDTH)
    except sd.PortAudioError as e:
      raise DeviceUnavailableError(f"microphone read failed: {e}") from e

    if overflowed:
      self.overflows += 1
      self.logger.debug("Input overflow", overflows=self.overflows)
    return bytes(data)

  def close(self) -> None:
    stream, self._stream = self._stream, None
    if stream is None:
      return
    try:
      stream.stop()
    finally:
      stream.close()
    self.logger.info("Microphone closed")


def open_microphone(
  sample_rate: int, frame_size: int, device: str | int | None = None
) -> MicrophoneSource:
  """Audio source factory used by the capture pipeline."""
  return MicrophoneSource(sample_rate, frame_size, device).open()
