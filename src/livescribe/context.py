from collections import deque


class SummaryContext:
  """
  Rolling history of previous summaries used to disambiguate new sentences.

  Owned by a single SummaryWorker, which is its only writer. Entries are kept oldest first.
  The total stored length never exceeds ``trim_threshold`` (twice the budget): once an
  append crosses it, whole entries are dropped from the oldest end until the rest fits in
  the budget. Rendering for a prompt returns at most ``budget`` characters, again keeping the
  most recent text.
  """

  def __init__(self, budget: int) -> None:
    if budget <= 0:
      raise ValueError(f"budget must be positive, got {budget}")
    self.budget = budget
    self._entries: deque[str] = deque()
    self._length = 0

  @property
  def trim_threshold(self) -> int:
    return self.budget * 2

  def __len__(self) -> int:
    """Total number of characters currently stored."""
    return self._length

  @property
  def entries(self) -> tuple[str, ...]:
    return tuple(self._entries)

  def append(self, summary: str) -> None:
    summary = summary.strip()
    if not summary:
      return

    self._entries.append(summary)
    self._length += len(summary)

    if self._length > self.trim_threshold:
      self._trim()

  def _trim(self) -> None:
    while len(self._entries) > 1 and self._length > self.budget:
      self._length -= len(self._entries.popleft())

    # A single oversized entry keeps only its most recent text
    if self._length > self.trim_threshold:
      newest = self._entries.pop()[-self.trim_threshold :]
      self._entries.append(newest)
      self._length = len(newest)

  def render(self) -> str:
    """Context text for a prompt, trimmed to the budget from the oldest end."""
    text = "\n".join(self._entries)
    if len(text) > self.budget:
      text = text[-self.budget :]
    return text

  def clear(self) -> None:
    self._entries.clear()
    self._length = 0
