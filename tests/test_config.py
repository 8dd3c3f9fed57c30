"""Tests for the configuration module."""

from pathlib import Path

import pytest

from livescribe.config import (
  AudioConfig,
  CaptureConfig,
  LivescribeConfig,
  SummarizerConfig,
  get_env_bool,
  load_config_from_file,
)


@pytest.fixture
def fake_filesystem(fs):
  """Variable name 'fs' causes a pylint warning. Provide a longer name
  acceptable to pylint for use in tests.
  """
  yield fs


class TestAudioConfig:
  """Test AudioConfig validation."""

  def test_audio_config_defaults(self):
    """Test that AudioConfig creates with expected defaults."""
    config = AudioConfig()

    assert config.sample_rate == 16000
    assert config.frame_size == 4096
    assert config.device is None

  def test_frame_size_whole_samples(self):
    """Test that frame_size must hold whole 16-bit samples."""
    assert AudioConfig(frame_size=8000).frame_size == 8000

    with pytest.raises(ValueError, match="must be a multiple of 2 bytes"):
      AudioConfig(frame_size=4095)

  def test_audio_config_positive_values(self):
    """Test that numeric fields require positive values."""
    with pytest.raises(ValueError):
      AudioConfig(sample_rate=0)

    with pytest.raises(ValueError):
      AudioConfig(frame_size=-2)


class TestSummarizerConfig:
  """Test SummarizerConfig validation and functionality."""

  def test_summarizer_config_defaults(self):
    """Test that SummarizerConfig creates with expected defaults."""
    config = SummarizerConfig()

    assert config.url == "http://localhost:11434/api/generate"
    assert config.stream is False
    assert config.sentinel == "NOTHING"
    assert "{sentinel}" in config.instruction
    assert config.context_budget == 600
    assert config.max_pending == 32

  def test_blank_sentinel_rejected(self):
    """Test that the sentinel cannot be blank."""
    with pytest.raises(ValueError, match="sentinel must not be blank"):
      SummarizerConfig(sentinel="   ")

  def test_budget_must_be_positive(self):
    """Test that the context budget must be positive."""
    with pytest.raises(ValueError):
      SummarizerConfig(context_budget=0)


class TestLivescribeConfig:
  """Test LivescribeConfig integration."""

  def test_livescribe_config_defaults(self):
    """Test that LivescribeConfig creates with nested defaults."""
    config = LivescribeConfig()

    assert isinstance(config.capture, CaptureConfig)
    assert config.capture.restart_delay == 3.0
    assert config.capture.autostart is True
    assert config.server.port == 8080


class TestConfigFileLoading:
  """Test configuration file loading and validation."""

  def test_load_valid_config_file(self, fake_filesystem):
    """Test loading a valid YAML configuration file."""
    config_data = """
audio:
  sample_rate: 8000
  frame_size: 2048
  device: "USB Microphone"

recognizer:
  model_path: "/models/vosk-small-en"

capture:
  restart_delay: 1.5
  autostart: false

summarizer:
  model: "llama3"
  stream: true
  sentinel: "NONE"

server:
  port: 9000
"""
    fake_filesystem.create_file("/test/config.yaml", contents=config_data)
    config = load_config_from_file(Path("/test/config.yaml"))

    assert config.audio.sample_rate == 8000
    assert config.audio.frame_size == 2048
    assert config.audio.device == "USB Microphone"
    assert config.recognizer.model_path == "/models/vosk-small-en"
    assert config.capture.restart_delay == 1.5
    assert config.capture.autostart is False
    assert config.summarizer.model == "llama3"
    assert config.summarizer.stream is True
    assert config.summarizer.sentinel == "NONE"
    assert config.server.port == 9000
    assert config.server.host == "0.0.0.0"

  def test_load_empty_config_file(self, fake_filesystem):
    """Test error handling for empty config file."""
    fake_filesystem.create_file("/test/empty.yaml", contents="")

    with pytest.raises(ValueError, match="Configuration file is empty"):
      load_config_from_file(Path("/test/empty.yaml"))

  def test_load_invalid_yaml(self, fake_filesystem):
    """Test error handling for invalid YAML."""
    fake_filesystem.create_file("/test/invalid.yaml", contents="invalid: yaml: content: [")

    with pytest.raises(ValueError, match="Invalid YAML"):
      load_config_from_file(Path("/test/invalid.yaml"))

  def test_load_non_mapping(self, fake_filesystem):
    """Test error handling for a YAML document that is not a mapping."""
    fake_filesystem.create_file("/test/list.yaml", contents="- one\n- two\n")

    with pytest.raises(ValueError, match="must contain a YAML dictionary"):
      load_config_from_file(Path("/test/list.yaml"))

  def test_load_nonexistent_file(self, fake_filesystem):
    """Test error handling for nonexistent file."""
    with pytest.raises(ValueError, match="Path does not point to a file"):
      load_config_from_file(Path("/nonexistent/file.yaml"))

  def test_load_config_with_validation_errors(self, fake_filesystem):
    """Test error handling for config with validation errors."""
    config_data = """
audio:
  frame_size: 1001
"""
    fake_filesystem.create_file("/test/config.yaml", contents=config_data)

    with pytest.raises(ValueError, match="must be a multiple of 2 bytes"):
      load_config_from_file(Path("/test/config.yaml"))


class TestEnvHelpers:
  """Test environment variable helpers used for CLI defaults."""

  @pytest.mark.parametrize("value", ["true", "1", "YES", "on"])
  def test_truthy(self, monkeypatch, value):
    """Test the accepted spellings of true."""
    monkeypatch.setenv("LIVESCRIBE_TEST_FLAG", value)
    assert get_env_bool("LIVESCRIBE_TEST_FLAG", False) is True

  def test_default(self, monkeypatch):
    """Test that an unset variable falls back to the default."""
    monkeypatch.delenv("LIVESCRIBE_TEST_FLAG", raising=False)
    assert get_env_bool("LIVESCRIBE_TEST_FLAG", True) is True
    assert get_env_bool("LIVESCRIBE_TEST_FLAG", False) is False
