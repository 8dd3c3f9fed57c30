import argparse
import asyncio
import os
import signal
from pathlib import Path

from livescribe.config import get_env_bool, get_env_int, load_config_from_file
from livescribe.logs import get_logger, setup_logging


def parse_args() -> argparse.Namespace:
  parser = argparse.ArgumentParser(
    prog="livescribe",
    description="Live microphone transcription and summarization over WebSocket.",
  )
  parser.add_argument(
    "--config",
    type=str,
    default=os.getenv("LIVESCRIBE_CONFIG"),
    help="Path to the configuration file. (Env: LIVESCRIBE_CONFIG)",
  )
  parser.add_argument(
    "--host",
    type=str,
    default=os.getenv("LIVESCRIBE_HOST"),
    help="Interface to listen on, overriding server.host. (Env: LIVESCRIBE_HOST)",
  )
  parser.add_argument(
    "--port",
    "-p",
    type=int,
    default=get_env_int("LIVESCRIBE_PORT", 0) or None,
    help="Port to listen on, overriding server.port. (Env: LIVESCRIBE_PORT)",
  )
  parser.add_argument(
    "--no-autostart",
    action="store_true",
    help="Wait for the first subscriber before opening the microphone.",
  )
  parser.add_argument(
    "--json_logs",
    action="store_true",
    default=get_env_bool("JSON_LOGS", False),
    help="Output logs in JSON format. (Env: JSON_LOGS)",
  )
  parser.add_argument(
    "--correlation_id",
    type=str,
    default=os.getenv("CORRELATION_ID"),
    help="Correlation ID for log tracing. (Env: CORRELATION_ID)",
  )
  args = parser.parse_args()

  if not args.config:
    parser.error(
      "Configuration file path is required. Set --config or LIVESCRIBE_CONFIG environment variable."
    )
  return args


async def main() -> None:
  args = parse_args()

  log_level = os.getenv("LOG_LEVEL", "INFO").upper()
  setup_logging(level=log_level, json_output=args.json_logs, correlation_id=args.correlation_id)
  logger = get_logger("main")

  from livescribe.server import LiveServer
  from livescribe.service import LiveTranscriptionService

  try:
    config = load_config_from_file(Path(args.config))
  except ValueError as e:
    logger.error("Configuration validation failed", error=str(e), config_path=args.config)
    raise SystemExit(2) from e

  overrides = {}
  if args.host:
    overrides["host"] = args.host
  if args.port:
    overrides["port"] = args.port
  if overrides:
    config.server = config.server.model_copy(update=overrides)
  if args.no_autostart:
    config.capture = config.capture.model_copy(update={"autostart": False})

  logger.info(
    "Starting livescribe",
    host=config.server.host,
    port=config.server.port,
    config_path=args.config,
  )

  service = LiveTranscriptionService.from_config(config)
  server = LiveServer(service, config.server.host, config.server.port)

  loop = asyncio.get_running_loop()
  for sig in (signal.SIGINT, signal.SIGTERM):
    try:
      loop.add_signal_handler(sig, server.request_shutdown)
    except NotImplementedError:
      # Windows event loops have no signal handler support
      pass

  await server.run()


def cli() -> None:
  try:
    asyncio.run(main())
  except KeyboardInterrupt:
    pass


if __name__ == "__main__":
  cli()
