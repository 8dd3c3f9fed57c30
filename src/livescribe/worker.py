"""
Asynchronous summarization stage.

Finalized sentences are queued by the capture pipeline and summarized one at a time, off
the capture loop's critical path, so a slow or unavailable backend never stalls
transcription. Summary events for one sentence are always published as a contiguous
``summary-start``, ``summary-token``..., ``summary-end`` run.
"""

import asyncio

from livescribe.bus import EventBus
from livescribe.config import SummarizerConfig
from livescribe.context import SummaryContext
from livescribe.errors import LivescribeError, MalformedResponseError
from livescribe.events import Event, EventKind
from livescribe.interfaces import Summarizer
from livescribe.logs import get_logger
from livescribe.utils import normalize_whitespace


def build_prompt(instruction: str, sentinel: str, context: str, sentence: str) -> str:
  """Combine the fixed instruction, prior summaries and the sentence into one prompt."""
  parts = [instruction.replace("{sentinel}", sentinel)]
  if context:
    parts.append(f"Previous summaries, for context only:\n{context}")
  parts.append(f"Current sentence:\n{sentence}")
  return "\n\n".join(parts)


class SummaryWorker:
  """
  Serializes summarization of finalized sentences.

  Exactly one summarization is in flight at any time. Failures are reported as ``error``
  events and the sentence is dropped; nothing is retried.
  """

  def __init__(
    self,
    bus: EventBus,
    summarizer: Summarizer,
    config: SummarizerConfig,
    context: SummaryContext | None = None,
  ) -> None:
    self.bus = bus
    self.summarizer = summarizer
    self.config = config
    self.context = context if context is not None else SummaryContext(config.context_budget)
    self.logger = get_logger("summary")

    self._queue: asyncio.Queue[str | None] = asyncio.Queue()
    self._task: asyncio.Task | None = None
    self._stopping = False

    # Statistics
    self.completed = 0
    self.failed = 0
    self.dropped = 0

  @property
  def pending(self) -> int:
    return self._queue.qsize()

  @property
  def running(self) -> bool:
    return self._task is not None and not self._task.done()

  def enqueue(self, sentence: str) -> bool:
    """
    Schedule ``sentence`` for summarization without blocking.

    :returns: False if the sentence was dropped (worker stopping or queue full).
    """
    if self._stopping:
      return False

    if self._queue.qsize() >= self.config.max_pending:
      self.dropped += 1
      self.logger.warning(
        "Summary queue full, dropping sentence", pending=self._queue.qsize(), dropped=self.dropped
      )
      return False

    self._queue.put_nowait(sentence)
    return True

  def start(self) -> None:
    """Start the worker task on the running event loop. Later calls are no-ops."""
    if self._task is not None:
      return
    self._stopping = False
    self._task = asyncio.create_task(self.run())
    self._task.set_name("summary_worker")

  async def stop(self) -> None:
    """
    Stop after the in-flight summarization (if any) finishes.

    Sentences still waiting in the queue are discarded.
    """
    if self._task is None:
      return
    self._stopping = True
    self._queue.put_nowait(None)
    await self._task
    self._task = None

  async def run(self) -> None:
    self.logger.info("Summary worker started", model=self.config.model, stream=self.config.stream)

    while True:
      sentence = await self._queue.get()
      if sentence is None or self._stopping:
        break
      await self.summarize(sentence)

    discarded = self._queue.qsize()
    self.logger.info(
      "Summary worker stopped",
      completed=self.completed,
      failed=self.failed,
      discarded=discarded,
    )

  async def summarize(self, sentence: str) -> None:
    """Run one summarization, publishing its start, token(s) and end events."""
    self.bus.publish(Event(kind=EventKind.SUMMARY_START, payload=sentence))
    try:
      prompt = build_prompt(
        self.config.instruction, self.config.sentinel, self.context.render(), sentence
      )
      summary = await self._generate(prompt)
      if summary:
        self.context.append(summary)
      self.completed += 1
      self.logger.debug("Sentence summarized", sentence=sentence, summary=summary)

    except MalformedResponseError as e:
      self.failed += 1
      self.logger.warning("Summarizer response could not be parsed", error=str(e))
      self.bus.publish(Event.error(f"Malformed summarizer response: {e}"))

    except LivescribeError as e:
      self.failed += 1
      self.logger.warning("Summarization failed", error=str(e), error_type=type(e).__name__)
      self.bus.publish(Event.error(f"Summarizer unavailable: {e}"))

    except Exception as e:
      self.failed += 1
      self.logger.exception("Unexpected summarization failure")
      self.bus.publish(Event.error(f"Summarization failed: {e}"))

    finally:
      self.bus.publish(Event(kind=EventKind.SUMMARY_END, payload=sentence))

  async def _generate(self, prompt: str) -> str:
    """
    Forward generated text as ``summary-token`` events and return the full summary.

    Chunks are held back while the text so far could still turn out to be the sentinel;
    a response that is exactly the sentinel (or empty) publishes nothing.
    """
    held = ""
    published: list[str] = []

    async for chunk in self.summarizer.generate(prompt):
      if published:
        self._publish_token(chunk, published)
        continue

      held += chunk
      if not self._could_be_sentinel(held):
        self._publish_token(held, published)
        held = ""

    if not published and held.strip() and not self._is_sentinel(held):
      self._publish_token(held, published)

    return normalize_whitespace("".join(published))

  def _publish_token(self, text: str, published: list[str]) -> None:
    if not text:
      return
    published.append(text)
    self.bus.publish(Event(kind=EventKind.SUMMARY_TOKEN, payload=text))

  def _normalized(self, text: str) -> str:
    return text.strip().rstrip(".").strip().upper()

  def _is_sentinel(self, text: str) -> bool:
    return self._normalized(text) == self._normalized(self.config.sentinel)

  def _could_be_sentinel(self, text: str) -> bool:
    return self._normalized(self.config.sentinel).startswith(self._normalized(text))
