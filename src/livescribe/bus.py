"""
In-memory fan-out of pipeline events to live subscribers.

The registry is copy-on-write: subscribe and unsubscribe replace an immutable snapshot
under a lock, while ``publish`` iterates whichever snapshot it read. Adding or removing
subscribers during a broadcast is therefore always safe.
"""

import asyncio
import threading
import uuid
from collections.abc import Mapping
from types import MappingProxyType

from livescribe.errors import SubscriberClosedError
from livescribe.events import Event
from livescribe.interfaces import EventSink
from livescribe.logs import get_logger

_CLOSED = object()


class QueueSink(EventSink):
  """
  Bounded asyncio queue sink consumed by a single connection handler.

  ``send`` never waits: a full queue means the consumer cannot keep up, which is reported
  as a failure so the bus disconnects it instead of letting it backpressure the producer.
  Must be used from the event loop thread that owns the queue.
  """

  def __init__(self, maxsize: int = 256) -> None:
    self._queue: asyncio.Queue[Event | object] = asyncio.Queue(maxsize=maxsize)
    self._closed = False

  @property
  def closed(self) -> bool:
    return self._closed

  def send(self, event: Event) -> None:
    if self._closed:
      raise SubscriberClosedError("sink is closed")
    try:
      self._queue.put_nowait(event)
    except asyncio.QueueFull:
      raise SubscriberClosedError(
        f"subscriber fell behind by {self._queue.maxsize} events"
      ) from None

  def close(self) -> None:
    if self._closed:
      return
    self._closed = True
    try:
      self._queue.put_nowait(_CLOSED)
    except asyncio.QueueFull:
      # Make room for the end marker; the consumer is being dropped anyway
      self._queue.get_nowait()
      self._queue.put_nowait(_CLOSED)

  async def receive(self) -> Event | None:
    """Wait for the next event, or None once the sink has been closed and drained."""
    item = await self._queue.get()
    if item is _CLOSED:
      # Leave the marker in place for any later receive() call
      self._queue.put_nowait(_CLOSED)
      return None
    assert isinstance(item, Event)
    return item


class Subscriber:
  """A registered consumer of bus events, owned by exactly one EventBus."""

  def __init__(self, sink: EventSink) -> None:
    self.id: str = uuid.uuid4().hex
    self.sink = sink
    self.alive = True

  def __aiter__(self) -> "Subscriber":
    return self

  async def __anext__(self) -> Event:
    if not isinstance(self.sink, QueueSink):
      raise TypeError("only queue-backed subscribers can be iterated")
    event = await self.sink.receive()
    if event is None:
      raise StopAsyncIteration
    return event

  def __repr__(self) -> str:
    return f"Subscriber(id={self.id!r}, alive={self.alive})"


class EventBus:
  """
  Broadcasts events to every live subscriber.

  ``publish`` makes one non-blocking send attempt per subscriber. A subscriber whose sink
  raises (broken connection, full queue) is marked dead, removed from the registry and its
  sink closed, as a side effect of that ``publish`` call. Such failures are logged and never
  reach the publisher or affect delivery to the other subscribers.
  """

  def __init__(self, queue_size: int = 256) -> None:
    self.queue_size = queue_size
    self._subscribers: Mapping[str, Subscriber] = MappingProxyType({})
    self._lock = threading.Lock()
    self._closed = False
    self.logger = get_logger("bus")

    # Statistics
    self.events_published = 0
    self.subscribers_dropped = 0

  @property
  def subscriber_count(self) -> int:
    return len(self._subscribers)

  @property
  def subscribers(self) -> tuple[Subscriber, ...]:
    """Snapshot of the currently registered subscribers."""
    return tuple(self._subscribers.values())

  @property
  def closed(self) -> bool:
    return self._closed

  def subscribe(self, sink: EventSink | None = None) -> Subscriber:
    """
    Register a new subscriber.

    :param sink: Outbound sink; a bounded ``QueueSink`` is created when omitted.
    :raises SubscriberClosedError: if the bus has been closed.
    """
    if self._closed:
      raise SubscriberClosedError("event bus is closed")

    subscriber = Subscriber(sink if sink is not None else QueueSink(self.queue_size))
    with self._lock:
      registry = dict(self._subscribers)
      registry[subscriber.id] = subscriber
      self._subscribers = MappingProxyType(registry)

    self.logger.info("Subscriber added", subscriber=subscriber.id, total=len(registry))
    return subscriber

  def unsubscribe(self, subscriber: Subscriber) -> bool:
    """Remove a subscriber. Returns False if it was not registered."""
    with self._lock:
      if subscriber.id not in self._subscribers:
        return False
      registry = dict(self._subscribers)
      del registry[subscriber.id]
      self._subscribers = MappingProxyType(registry)

    subscriber.alive = False
    self.logger.info("Subscriber removed", subscriber=subscriber.id, total=len(registry))
    return True

  def publish(self, event: Event) -> int:
    """
    Deliver ``event`` to every live subscriber.

    Subscribers that fail the send attempt are removed and closed.

    :returns: The number of subscribers the event was delivered to.
    """
    self.events_published += 1
    delivered = 0
    for subscriber in self._subscribers.values():
      if self.send_to(subscriber, event):
        delivered += 1
    return delivered

  def send_to(self, subscriber: Subscriber, event: Event) -> bool:
    """Deliver ``event`` to a single subscriber with the same failure policy as ``publish``."""
    if not subscriber.alive:
      return False
    try:
      subscriber.sink.send(event)
      return True
    except Exception as e:
      self.logger.warning(
        "Failed to deliver event, dropping subscriber",
        subscriber=subscriber.id,
        kind=event.kind,
        error=str(e),
      )
      self._drop(subscriber)
      return False

  def close(self) -> None:
    """Complete every subscriber and refuse new ones."""
    if self._closed:
      return
    self._closed = True

    with self._lock:
      subscribers = list(self._subscribers.values())
      self._subscribers = MappingProxyType({})

    for subscriber in subscribers:
      subscriber.alive = False
      self._close_sink(subscriber)

    self.logger.info("Event bus closed", completed=len(subscribers))

  def _drop(self, subscriber: Subscriber) -> None:
    self.unsubscribe(subscriber)
    subscriber.alive = False
    self.subscribers_dropped += 1
    self._close_sink(subscriber)

  def _close_sink(self, subscriber: Subscriber) -> None:
    try:
      subscriber.sink.close()
    except Exception as e:
      self.logger.debug("Error closing subscriber sink", subscriber=subscriber.id, error=str(e))
