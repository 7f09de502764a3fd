"""Deep Research - interactive research assistant

Chat until the research scope is clear, then watch the agent search the web
and print a cited report.
"""

import asyncio
import os
import signal
import sys

from loguru import logger

from deep_research.agents.session import ResearchSession
from deep_research.config import ConfigError, Settings, settings
from deep_research.llm_client import build_llm_services
from deep_research.models.events import EventType, SessionEvent
from deep_research.services.logger import configure_logging, log_event
from deep_research.tools.exa_search import ExaSearchClient

USER_PROMPT = "\u001b[94mYou\u001b[0m: "
GPT_RESPONSE = "\u001b[93mGPT\u001b[0m: {}"
WELCOME_MESSAGE = "Chat with GPT (use 'ctrl-c' to quit)"


class LineReader:
    """Reads lines from a raw file descriptor without blocking the event loop.

    Bytes are buffered here rather than in ``sys.stdin``, so lines that arrive
    together in one read are all returned before the loop waits again.
    Returns None at end of input.
    """

    def __init__(self, fd: int, chunk_size: int = 4096):
        self.fd = fd
        self.chunk_size = chunk_size
        self._buffer = bytearray()
        self._eof = False

    async def readline(self) -> str | None:
        while True:
            newline = self._buffer.find(b"\n")
            if newline >= 0:
                line = bytes(self._buffer[:newline])
                del self._buffer[: newline + 1]
                return line.decode("utf-8", errors="replace").rstrip("\r")
            if self._eof:
                if not self._buffer:
                    return None
                line = bytes(self._buffer)
                self._buffer.clear()
                return line.decode("utf-8", errors="replace")

            chunk = await self._read_chunk()
            if chunk:
                self._buffer.extend(chunk)
            else:
                self._eof = True

    async def _read_chunk(self) -> bytes:
        loop = asyncio.get_running_loop()
        readable: asyncio.Future[None] = loop.create_future()

        def on_readable() -> None:
            if not readable.done():
                readable.set_result(None)

        try:
            loop.add_reader(self.fd, on_readable)
        except (NotImplementedError, PermissionError):
            # Regular files and non-selector loops cannot be watched.
            return await asyncio.to_thread(os.read, self.fd, self.chunk_size)
        try:
            await readable
        finally:
            loop.remove_reader(self.fd)
        return os.read(self.fd, self.chunk_size)


def make_user_reader(fd: int | None = None):
    """Prompt-printing line reader over stdin (or ``fd``)."""
    reader = LineReader(sys.stdin.fileno() if fd is None else fd)

    async def read_user_message() -> str | None:
        print(USER_PROMPT, end="", flush=True)
        return await reader.readline()

    return read_user_message


def print_event(event: SessionEvent) -> None:
    data = event.data

    if event.event == EventType.CLARIFICATION_REQUESTED:
        print(GPT_RESPONSE.format(data.get("question", "")))

    elif event.event == EventType.SCOPE_CONFIRMED:
        print(GPT_RESPONSE.format(data.get("verification", "")))

    elif event.event == EventType.BRIEF_CREATED:
        print("\n[*] Research brief ready, starting research...")

    elif event.event == EventType.SEARCH_STARTED:
        print(f"[~] Search {data.get('search_call')}/{data.get('budget')}: {data.get('query', '')[:80]}")

    elif event.event == EventType.SEARCH_SKIPPED:
        print(f"  [!] Search budget reached, skipped: {data.get('query', '')[:80]}")

    elif event.event == EventType.SUMMARIES_READY:
        print(f"  [+] {data.get('documents')} documents summarized ({data.get('notes_total')} notes)")

    elif event.event == EventType.SYNTHESIS_STARTED:
        print(f"\n[+] Writing report from {data.get('notes_count')} notes...")

    elif event.event == EventType.RESEARCH_COMPLETE:
        print(f"\n[*] Research complete in {data.get('runtime_ms')}ms "
              f"({data.get('search_calls')} searches)")
        print(GPT_RESPONSE.format(data.get("report", "")))


async def run_session(settings: Settings) -> int:
    services = build_llm_services(settings)
    async with ExaSearchClient.from_settings(settings) as search:
        session = ResearchSession.from_settings(
            settings,
            completion=services.completion,
            structured=services.structured,
            summary_client=services.summarizer,
            search=search,
            get_user_message=make_user_reader(),
        )
        print(WELCOME_MESSAGE)
        async for event in session.run():
            print_event(event)

    logger.debug(f"Session ended in state {session.state.value}")
    return 0


async def run_until_interrupted(settings: Settings) -> int:
    """Run the session; SIGINT/SIGTERM cancel it."""
    loop = asyncio.get_running_loop()
    task = asyncio.current_task()
    handled: list[signal.Signals] = []

    def on_signal(sig: signal.Signals) -> None:
        print(f"\nReceived signal {sig.name}, shutting down gracefully...")
        log_event("signal", "Shutdown requested", signal=sig.name)
        if task is not None:
            task.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, on_signal, sig)
        except NotImplementedError:
            continue
        handled.append(sig)

    try:
        return await run_session(settings)
    except asyncio.CancelledError:
        logger.info("Session cancelled")
        return 1
    finally:
        for sig in handled:
            loop.remove_signal_handler(sig)


def main() -> int:
    try:
        settings.validate_required()
    except ConfigError as e:
        print(f"failed to initialize application: {e}", file=sys.stderr)
        return 1

    configure_logging(settings)

    try:
        return asyncio.run(run_until_interrupted(settings))
    except Exception as e:
        logger.exception(f"Application error: {e}")
        print(f"Application error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
