"""
Result formatting and I/O setup for the command line.

Results are written to the sink as soon as the pipeline produces them,
either as one text line each or as an indented JSON object each.
"""

import asyncio
import concurrent.futures
import json
import sys
import threading
from typing import AsyncIterator, Optional, TextIO

from .scanners.base_scanner import Result


NO_RESULTS_MESSAGE = "No vulnerabilities found."


def format_text(result: Result) -> str:
    """
    One-line text rendering of a Result.

    Example:
        URL: https://example.com/?q=1 Param: q Unfiltered: [" < >]
    """
    marker = " [Possible SQL Injection]" if result.injection_suspected else ""
    chars = " ".join(result.unfiltered)
    return f"URL: {result.url} Param: {result.param}{marker} Unfiltered: [{chars}]"


def format_json(result: Result) -> str:
    """Indented JSON rendering of a Result"""
    return json.dumps(result.to_dict(), indent=2)


class ResultWriter:
    """
    Pipeline sink that writes each Result to a stream immediately.

    Example:
        >>> writer = ResultWriter(sys.stdout, json_output=True)
        >>> await pipeline.run(urls, sink=writer)
        >>> writer.finish()
    """

    def __init__(self, stream: TextIO, json_output: bool = False):
        self.stream = stream
        self.json_output = json_output
        self.count = 0

    def __call__(self, result: Result):
        line = format_json(result) if self.json_output else format_text(result)
        self.stream.write(line + "\n")
        self.stream.flush()
        self.count += 1

    def finish(self):
        """Write the informational line when nothing was found"""
        if self.count == 0:
            self.stream.write(NO_RESULTS_MESSAGE + "\n")
            self.stream.flush()


def open_input(path: Optional[str]) -> TextIO:
    """
    Open the URL source (stdin when no path is given).

    Raises:
        SetupError: If the file cannot be opened
    """
    if not path:
        return sys.stdin
    try:
        return open(path, "r", encoding="utf-8", errors="replace")
    except OSError as e:
        raise SetupError(f"error opening input file {path}: {e}") from e


def open_output(path: Optional[str]) -> TextIO:
    """
    Open the result sink (stdout when no path is given).

    Raises:
        SetupError: If the file cannot be created
    """
    if not path:
        return sys.stdout
    try:
        return open(path, "w", encoding="utf-8")
    except OSError as e:
        raise SetupError(f"error creating output file {path}: {e}") from e


async def read_lines(stream: TextIO, buffer_size: int = 256) -> AsyncIterator[str]:
    """
    Yield lines lazily without blocking the event loop.

    A daemon thread reads the stream into a bounded queue. A reader stuck
    on an idle stdin therefore never holds up event loop shutdown, and
    closing the generator simply abandons it.

    Raises:
        OSError, UnicodeDecodeError: If reading the stream fails
    """
    loop = asyncio.get_running_loop()
    lines: asyncio.Queue = asyncio.Queue(maxsize=buffer_size)

    def deliver(item) -> bool:
        try:
            asyncio.run_coroutine_threadsafe(lines.put(item), loop).result()
        except (RuntimeError, concurrent.futures.CancelledError):
            # Event loop is gone or the put was abandoned
            return False
        return True

    def pump():
        try:
            for line in iter(stream.readline, ""):
                if not deliver(line):
                    return
        except (OSError, ValueError, UnicodeDecodeError) as e:
            deliver(e)
            return
        deliver(None)

    threading.Thread(target=pump, name="refract-input", daemon=True).start()

    while True:
        item = await lines.get()
        if item is None:
            return
        if isinstance(item, Exception):
            raise item
        yield item.rstrip("\r\n")


class SetupError(Exception):
    """Raised when the input or output stream cannot be opened"""
    pass
