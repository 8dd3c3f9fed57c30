"""Centralized logging configuration for livescribe using structlog."""

import logging
import time
from typing import Any

import structlog
from structlog.dev import RESET_ALL, Column, ConsoleRenderer, KeyValueColumnFormatter
from structlog.typing import EventDict, Processor, WrappedLogger

# Relative timestamps are measured from import time
_PROGRAM_START_TIME = time.time()

_LEVEL_COLORS = {
  "debug": (0x908CAA, "dbug"),
  "info": (0x9CCFD8, "info"),
  "warning": (0xF6C177, "warn"),
  "error": (0xEB6F92, "eror"),
  "exception": (0xEB6F92, "exc!"),
  "critical": (0xEB6F92, "crit"),
}


def hex_to_ansi_fg(hex_color: int) -> str:
  """Convert hex color (e.g., 0xad8a89) to ANSI 24-bit foreground escape code."""
  r = (hex_color >> 16) & 0xFF
  g = (hex_color >> 8) & 0xFF
  b = hex_color & 0xFF
  return f"\x1b[38;2;{r};{g};{b}m"


class _FloatPrecisionProcessor:
  """A structlog processor that rounds top-level float values to a fixed number of digits."""

  def __init__(self, digits: int = 3):
    self.digits = digits

  def __call__(self, _: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    for key, value in event_dict.items():
      if isinstance(value, float):
        event_dict[key] = round(value, self.digits)
    return event_dict


def _relative_time_processor(
  _logger: WrappedLogger, _method_name: str, event_dict: EventDict
) -> EventDict:
  """Add a relative timestamp since program start, formatted as [hh:][mm:]ss.mmm."""
  elapsed = time.time() - _PROGRAM_START_TIME
  hours = int(elapsed // 3600)
  minutes = int((elapsed % 3600) // 60)
  seconds = elapsed % 60

  dim = "\x1b[2m"
  dark = "\x1b[90m"
  hours_str = f"{hours:02d}:" if hours else ""
  minutes_str = f"{minutes:02d}:" if minutes or hours else ""

  clock = f"{hours_str}{minutes_str}{seconds:06.3f}"
  event_dict["timestamp"] = f"{dark}+{RESET_ALL}{dim}{clock}{RESET_ALL}"
  return event_dict


def _compact_level_processor(
  _logger: WrappedLogger, _method_name: str, event_dict: EventDict
) -> EventDict:
  """Render log levels as a coloured 4-character tag."""
  level = event_dict.get("level")
  if level in _LEVEL_COLORS:
    color, tag = _LEVEL_COLORS[level]
    event_dict["level"] = f"[{hex_to_ansi_fg(color)}{tag}{RESET_ALL}]"
  return event_dict


def _console_renderer() -> ConsoleRenderer:
  logger_name_formatter = KeyValueColumnFormatter(
    key_style=None,
    value_style=hex_to_ansi_fg(0x7D6B95),
    reset_style=RESET_ALL,
    value_repr=str,
    prefix="[",
    postfix="]",
  )

  def plain(style: str = "", width: int = 0) -> KeyValueColumnFormatter:
    return KeyValueColumnFormatter(
      key_style=None, value_style=style, reset_style=RESET_ALL, value_repr=str, width=width
    )

  return ConsoleRenderer(
    colors=True,
    columns=[
      # Remaining key=value pairs
      Column(
        "",
        KeyValueColumnFormatter(
          key_style=hex_to_ansi_fg(0x6E6A86),
          value_style=hex_to_ansi_fg(0xF6C177),
          reset_style=RESET_ALL,
          value_repr=str,
        ),
      ),
      Column("timestamp", plain()),
      Column("level", plain()),
      Column("logger", logger_name_formatter),
      Column("event", plain("\x1b[1m", width=30)),
    ],
  )


def setup_logging(
  level: str = "INFO", json_output: bool = False, correlation_id: str | None = None
) -> None:
  """Configure structured logging for the application."""

  shared_processors: list[Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.stdlib.ExtraAdder(),
    _FloatPrecisionProcessor(digits=3),
  ]

  if json_output:
    shared_processors.append(structlog.processors.TimeStamper(fmt="iso"))
    log_renderer: Processor = structlog.processors.JSONRenderer()
  else:
    shared_processors.extend([_compact_level_processor, _relative_time_processor])
    log_renderer = _console_renderer()

  shared_processors.extend(
    [structlog.processors.StackInfoRenderer(), structlog.processors.format_exc_info]
  )

  if correlation_id:
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

  structlog.configure(
    processors=[structlog.stdlib.filter_by_level]
    + shared_processors
    + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
  )

  formatter = structlog.stdlib.ProcessorFormatter(
    foreign_pre_chain=shared_processors,
    processors=[
      structlog.stdlib.ProcessorFormatter.remove_processors_meta,
      log_renderer,
    ],
  )

  handler = logging.StreamHandler()
  handler.setFormatter(formatter)
  root_logger = logging.getLogger()
  root_logger.handlers.clear()
  root_logger.addHandler(handler)
  root_logger.setLevel(level)

  # Library chatter is only interesting when something goes wrong
  for name in ("websockets", "aiohttp"):
    liblog = logging.getLogger(name)
    liblog.handlers.clear()
    liblog.setLevel(logging.WARNING)
    liblog.propagate = True


def get_logger(
  name: str | None = None, *args: Any, **initial_values: Any
) -> structlog.stdlib.BoundLogger:
  """Get a structured logger instance."""
  return structlog.get_logger(*([name] + list(args)), **initial_values)
