import asyncio
import json
from http import HTTPStatus
from urllib.parse import urlsplit

from websockets.asyncio.server import ServerConnection, serve
from websockets.datastructures import Headers
from websockets.exceptions import ConnectionClosed
from websockets.frames import CloseCode
from websockets.http11 import Request, Response

from livescribe.bus import Subscriber
from livescribe.constants import HEALTH_PATH, STATUS_PATH, STREAM_PATH
from livescribe.errors import SubscriberClosedError
from livescribe.logs import get_logger
from livescribe.service import LiveTranscriptionService


def json_response(status: HTTPStatus, body: dict) -> Response:
  """Plain HTTP JSON response answered instead of a WebSocket handshake."""
  payload = json.dumps(body).encode("utf-8")
  headers = Headers(
    [
      ("Content-Type", "application/json"),
      ("Content-Length", str(len(payload))),
      ("Access-Control-Allow-Origin", "*"),
      ("Connection", "close"),
    ]
  )
  return Response(status.value, status.phrase, headers, payload)


class LiveServer:
  """
  Serves the live event stream over WebSocket and the status queries over plain HTTP.

  Routes:
    ``/api/live/stream``  WebSocket; every event is sent as a JSON text message
    ``/api/live/status``  HTTP GET; ``{"listening": bool}``
    ``/healthz``          HTTP GET; service health and counters
  """

  def __init__(self, service: LiveTranscriptionService, host: str, port: int) -> None:
    self.service = service
    self.host = host
    self.port = port
    self.logger = get_logger("server")
    self._shutdown_requested = asyncio.Event()

  def process_request(self, connection: ServerConnection, request: Request) -> Response | None:
    """Answer HTTP queries directly; only the stream path proceeds to the handshake."""
    path = urlsplit(request.path).path

    if path == STREAM_PATH:
      return None
    if path == STATUS_PATH:
      return json_response(HTTPStatus.OK, dict(self.service.status()))
    if path == HEALTH_PATH:
      return json_response(HTTPStatus.OK, dict(self.service.health()))

    self.logger.debug("Unknown path requested", path=path)
    return json_response(HTTPStatus.NOT_FOUND, {"error": f"no route for {path}"})

  async def handle_connection(self, websocket: ServerConnection) -> None:
    """Stream events to one subscriber until either side goes away."""
    try:
      subscriber = self.service.subscribe()
    except SubscriberClosedError:
      self.logger.info("Refusing subscriber during shutdown", address=websocket.remote_address)
      await websocket.close(CloseCode.GOING_AWAY, "server shutting down")
      return

    self.logger.info(
      "Subscriber connected",
      subscriber=subscriber.id,
      address=websocket.remote_address,
    )

    forward_task = asyncio.create_task(self._forward_events(websocket, subscriber))
    forward_task.set_name(f"forward_{subscriber.id}")
    watch_task = asyncio.create_task(self._watch_client(websocket, subscriber))
    watch_task.set_name(f"watch_{subscriber.id}")

    try:
      done, pending = await asyncio.wait(
        [forward_task, watch_task], return_when=asyncio.FIRST_COMPLETED
      )

      for task in pending:
        task.cancel()
        try:
          await task
        except asyncio.CancelledError:
          pass

      for task in done:
        error = task.exception()
        if error is not None and not isinstance(error, ConnectionClosed):
          self.logger.error("Subscriber task failed", task=task.get_name(), error=str(error))

      # Only a stream that drained without error is closed from this side
      if forward_task in done and forward_task.exception() is None:
        await self._close_completed(websocket, subscriber)

    finally:
      self.service.unsubscribe(subscriber)
      subscriber.sink.close()
      self.logger.info("Subscriber disconnected", subscriber=subscriber.id)

  async def _forward_events(self, websocket: ServerConnection, subscriber: Subscriber) -> None:
    async for event in subscriber:
      await websocket.send(event.to_json())

  async def _watch_client(self, websocket: ServerConnection, subscriber: Subscriber) -> None:
    """Subscribers only listen; this returns once the client closes the connection."""
    try:
      async for message in websocket:
        self.logger.warning(
          "Received unexpected message from subscriber",
          subscriber=subscriber.id,
          message=message[:100] if isinstance(message, str) else str(type(message)),
        )
    except ConnectionClosed:
      pass

  async def _close_completed(self, websocket: ServerConnection, subscriber: Subscriber) -> None:
    """The subscriber's stream ended on our side: server shutdown or a dropped slow client."""
    if self.service.bus.closed:
      code, reason = CloseCode.GOING_AWAY, "server shutting down"
    else:
      code, reason = CloseCode.TRY_AGAIN_LATER, "subscriber fell behind"

    self.logger.info("Completing subscriber stream", subscriber=subscriber.id, reason=reason)
    try:
      await websocket.close(code, reason)
    except Exception as e:
      self.logger.debug("Error closing subscriber connection", error=str(e))

  def request_shutdown(self) -> None:
    self._shutdown_requested.set()

  async def run(self) -> None:
    """Boot the service, serve until shutdown is requested, then shut everything down."""
    await self.service.boot()

    async with serve(
      self.handle_connection,
      self.host,
      self.port,
      process_request=self.process_request,
    ):
      self.logger.info(
        f"Serving on {self.host}:{self.port}",
        stream=STREAM_PATH,
        status=STATUS_PATH,
      )
      try:
        await self._shutdown_requested.wait()
      finally:
        await self.service.shutdown()
