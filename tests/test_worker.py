"""Tests for the summary worker."""

import asyncio

from fakes import FakeSummarizer, RecordingSink, wait_until

from livescribe.bus import EventBus
from livescribe.config import SummarizerConfig
from livescribe.errors import MalformedResponseError, SummarizerUnavailableError
from livescribe.events import EventKind
from livescribe.worker import SummaryWorker, build_prompt


def _summary_runs(sink: RecordingSink) -> list[list[tuple[EventKind, str]]]:
  """Group summary events into start..end runs, asserting runs never interleave."""
  runs: list[list[tuple[EventKind, str]]] = []
  current: list[tuple[EventKind, str]] | None = None
  for event in sink.events:
    if event.kind == EventKind.SUMMARY_START:
      assert current is None, "summary started while another was in flight"
      current = [(event.kind, event.payload)]
    elif current is not None:
      current.append((event.kind, event.payload))
      if event.kind == EventKind.SUMMARY_END:
        runs.append(current)
        current = None
  assert current is None
  return runs


async def _summarize_all(
  sentences: list[str], summarizer: FakeSummarizer, config: SummarizerConfig | None = None
) -> tuple[RecordingSink, SummaryWorker]:
  bus = EventBus()
  sink = RecordingSink()
  bus.subscribe(sink)
  worker = SummaryWorker(bus, summarizer, config or SummarizerConfig())
  worker.start()
  for sentence in sentences:
    worker.enqueue(sentence)
  await wait_until(lambda: sink.kinds.count(EventKind.SUMMARY_END) == len(sentences))
  await worker.stop()
  return sink, worker


class TestBuildPrompt:
  """Test prompt assembly."""

  def test_without_context(self):
    """Test that an empty context is left out and the sentinel is filled in."""
    prompt = build_prompt("Reply {sentinel} if unsure.", "NOTHING", "", "Hello there.")

    assert prompt == "Reply NOTHING if unsure.\n\nCurrent sentence:\nHello there."

  def test_with_context(self):
    """Test that prior summaries appear before the sentence."""
    prompt = build_prompt("Summarize.", "NOTHING", "Alice arrived.", "She sat down.")

    assert "Previous summaries, for context only:\nAlice arrived." in prompt
    assert prompt.index("Alice arrived.") < prompt.index("She sat down.")


class TestSummaryWorker:
  """Test serialized summarization and its event sequences."""

  def test_start_token_end_sequence(self):
    """Test that one sentence produces start, token and end carrying the sentence."""
    sink, worker = asyncio.run(_summarize_all(["Alice opened the meeting."], FakeSummarizer()))

    assert _summary_runs(sink) == [
      [
        (EventKind.SUMMARY_START, "Alice opened the meeting."),
        (EventKind.SUMMARY_TOKEN, "summary"),
        (EventKind.SUMMARY_END, "Alice opened the meeting."),
      ]
    ]
    assert worker.completed == 1

  def test_summaries_are_serialized(self):
    """Test that two sentences queued together are summarized one after the other."""
    summarizer = FakeSummarizer(["first summary", "second summary"], delay=0.02)
    sink, _ = asyncio.run(_summarize_all(["one", "two"], summarizer))

    runs = _summary_runs(sink)
    assert [run[0][1] for run in runs] == ["one", "two"]
    assert runs[0][1] == (EventKind.SUMMARY_TOKEN, "first summary")
    assert runs[1][1] == (EventKind.SUMMARY_TOKEN, "second summary")
    assert summarizer.max_in_flight == 1

  def test_failure_reports_error_between_start_and_end(self):
    """Test that an unavailable backend yields start, error, end and no token."""
    summarizer = FakeSummarizer([SummarizerUnavailableError("connection refused")])
    sink, worker = asyncio.run(_summarize_all(["hello"], summarizer))

    assert sink.kinds == [EventKind.SUMMARY_START, EventKind.ERROR, EventKind.SUMMARY_END]
    assert sink.of_kind(EventKind.ERROR) == ["Summarizer unavailable: connection refused"]
    assert worker.failed == 1

  def test_malformed_response_is_reported(self):
    """Test that an unparseable answer yields start, error, end with its own message."""
    summarizer = FakeSummarizer([MalformedResponseError("no JSON object")])
    sink, worker = asyncio.run(_summarize_all(["hello"], summarizer))

    assert sink.kinds == [EventKind.SUMMARY_START, EventKind.ERROR, EventKind.SUMMARY_END]
    assert sink.of_kind(EventKind.ERROR) == ["Malformed summarizer response: no JSON object"]
    assert worker.failed == 1
    assert worker.context.entries == ()

  def test_unexpected_failure_is_contained(self):
    """Test that any other exception is also reported and the worker keeps going."""
    summarizer = FakeSummarizer([RuntimeError("kaboom"), "recovered"])
    sink, worker = asyncio.run(_summarize_all(["one", "two"], summarizer))

    runs = _summary_runs(sink)
    assert runs[0][1] == (EventKind.ERROR, "Summarization failed: kaboom")
    assert runs[1][1] == (EventKind.SUMMARY_TOKEN, "recovered")
    assert worker.failed == 1
    assert worker.completed == 1

  def test_sentinel_suppresses_tokens(self):
    """Test that a sentinel response publishes no token and adds no context."""
    summarizer = FakeSummarizer(["NOTHING", "nothing.", ["NOT", "HING"]])
    sink, worker = asyncio.run(_summarize_all(["a", "b", "c"], summarizer))

    assert EventKind.SUMMARY_TOKEN not in sink.kinds
    assert sink.kinds.count(EventKind.SUMMARY_START) == 3
    assert worker.context.entries == ()

  def test_sentinel_prefix_is_released(self):
    """Test that text resembling the start of the sentinel is still published."""
    summarizer = FakeSummarizer([["No", "rth wing closed."]])
    sink, worker = asyncio.run(_summarize_all(["a"], summarizer))

    assert sink.of_kind(EventKind.SUMMARY_TOKEN) == ["North wing closed."]
    assert worker.context.entries == ("North wing closed.",)

  def test_streamed_chunks_become_tokens(self):
    """Test that streamed chunks are forwarded in order, one token each."""
    summarizer = FakeSummarizer([["Alice ", "opened ", "the meeting."]])
    sink, worker = asyncio.run(_summarize_all(["a"], summarizer))

    assert sink.of_kind(EventKind.SUMMARY_TOKEN) == ["Alice ", "opened ", "the meeting."]
    assert worker.context.entries == ("Alice opened the meeting.",)

  def test_previous_summaries_feed_later_prompts(self):
    """Test that completed summaries are included as context for the next sentence."""
    summarizer = FakeSummarizer(["Alice opened the meeting.", "She left."])
    asyncio.run(_summarize_all(["one", "two"], summarizer))

    assert "Alice opened the meeting." not in summarizer.prompts[0]
    assert "Alice opened the meeting." in summarizer.prompts[1]
    assert summarizer.prompts[1].endswith("Current sentence:\ntwo")

  def test_enqueue_drops_when_full(self):
    """Test that enqueue never blocks and drops sentences beyond max_pending."""

    async def scenario():
      worker = SummaryWorker(EventBus(), FakeSummarizer(), SummarizerConfig(max_pending=2))
      accepted = [worker.enqueue(str(i)) for i in range(4)]
      return accepted, worker

    accepted, worker = asyncio.run(scenario())

    assert accepted == [True, True, False, False]
    assert worker.dropped == 2
    assert worker.pending == 2

  def test_stop_discards_waiting_sentences(self):
    """Test that stop lets the in-flight summary finish and skips the rest."""

    async def scenario():
      bus = EventBus()
      sink = RecordingSink()
      bus.subscribe(sink)
      summarizer = FakeSummarizer(delay=0.05)
      worker = SummaryWorker(bus, summarizer, SummarizerConfig())
      worker.start()
      for sentence in ("one", "two", "three"):
        worker.enqueue(sentence)
      await wait_until(lambda: EventKind.SUMMARY_START in sink.kinds)
      await worker.stop()
      return sink, worker

    sink, worker = asyncio.run(scenario())

    assert _summary_runs(sink)[0][0] == (EventKind.SUMMARY_START, "one")
    assert sink.kinds.count(EventKind.SUMMARY_START) == 1
    assert worker.running is False
    assert worker.enqueue("late") is False
