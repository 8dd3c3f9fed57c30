"""
HTTP client for Ollama-compatible text generation endpoints.

Requests are ``POST {url}`` with a JSON body ``{model, prompt, stream}``. A non-streaming
answer is a single JSON object whose ``response`` field holds the text; a streaming answer
is newline-delimited JSON where each object carries the next ``response`` chunk.
"""

import asyncio
from collections.abc import AsyncIterator

import aiohttp

from livescribe.config import SummarizerConfig
from livescribe.errors import MalformedResponseError, SummarizerUnavailableError
from livescribe.interfaces import Summarizer
from livescribe.logs import get_logger
from livescribe.utils import normalize_whitespace, parse_json_object

CONNECT_TIMEOUT = 10.0


class OllamaSummarizer(Summarizer):
  """
  Summarizer backed by an Ollama ``/api/generate`` endpoint.

  Every failure is mapped onto the livescribe taxonomy: transport errors, timeouts and
  non-2xx answers raise ``SummarizerUnavailableError``; an answer without a single
  parseable object raises ``MalformedResponseError``. Individual malformed lines inside a
  stream are skipped.
  """

  def __init__(
    self,
    url: str,
    model: str,
    stream: bool = False,
    read_timeout: float = 60.0,
    session: aiohttp.ClientSession | None = None,
  ) -> None:
    self.url = url
    self.model = model
    self.stream = stream
    self.read_timeout = read_timeout
    self._session = session
    self._owns_session = session is None
    self.logger = get_logger("summary/ollama")

    # Statistics
    self.requests_sent = 0
    self.malformed_lines = 0

  @classmethod
  def from_config(cls, config: SummarizerConfig) -> "OllamaSummarizer":
    return cls(
      url=config.url,
      model=config.model,
      stream=config.stream,
      read_timeout=config.read_timeout,
    )

  def _get_session(self) -> aiohttp.ClientSession:
    if self._session is None or self._session.closed:
      timeout = aiohttp.ClientTimeout(
        total=None, sock_connect=CONNECT_TIMEOUT, sock_read=self.read_timeout
      )
      self._session = aiohttp.ClientSession(timeout=timeout)
      self._owns_session = True
    return self._session

  async def generate(self, prompt: str) -> AsyncIterator[str]:
    payload = {"model": self.model, "prompt": prompt, "stream": self.stream}
    session = self._get_session()
    self.requests_sent += 1

    self.logger.debug(
      "Sending generation request",
      url=self.url,
      model=self.model,
      stream=self.stream,
      prompt_chars=len(prompt),
    )

    try:
      async with session.post(self.url, json=payload) as response:
        if response.status < 200 or response.status >= 300:
          body = await response.text()
          raise SummarizerUnavailableError(
            f"summarizer answered HTTP {response.status}: {body.strip()[:200]}"
          )

        if self.stream:
          async for chunk in self._read_stream(response):
            yield chunk
        else:
          yield await self._read_single(response)

    except aiohttp.ClientError as e:
      raise SummarizerUnavailableError(f"summarizer unreachable: {e}") from e
    except asyncio.TimeoutError as e:
      raise SummarizerUnavailableError(
        f"summarizer timed out after {self.read_timeout}s"
      ) from e

  async def _read_single(self, response: aiohttp.ClientResponse) -> str:
    body = await response.text()
    document = parse_json_object(body)
    if document is None:
      raise MalformedResponseError(f"unparseable summarizer response: {body.strip()[:200]!r}")

    self._raise_for_backend_error(document)

    text = document.get("response")
    if not isinstance(text, str):
      self.logger.warning("Summarizer response has no text field", keys=sorted(document))
      return ""
    return normalize_whitespace(text)

  async def _read_stream(self, response: aiohttp.ClientResponse) -> AsyncIterator[str]:
    parsed_any = False

    async for raw_line in response.content:
      line = raw_line.strip()
      if not line:
        continue

      document = parse_json_object(line)
      if document is None:
        self.malformed_lines += 1
        self.logger.debug("Skipping malformed stream line", line=line[:120])
        continue

      parsed_any = True
      self._raise_for_backend_error(document)

      chunk = document.get("response")
      if isinstance(chunk, str) and chunk:
        yield chunk

      if document.get("done") is True:
        break

    if not parsed_any:
      raise MalformedResponseError("summarizer stream contained no parseable objects")

  def _raise_for_backend_error(self, document: dict) -> None:
    error = document.get("error")
    if error:
      raise SummarizerUnavailableError(f"summarizer reported an error: {error}")

  async def close(self) -> None:
    """Close the HTTP session if this summarizer created it."""
    if self._owns_session and self._session is not None and not self._session.closed:
      await self._session.close()
    self._session = None
