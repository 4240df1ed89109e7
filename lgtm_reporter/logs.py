"""Buffer captured test output and upload it as run logs."""

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Literal

from lgtm_reporter.client import LgtmClient

log = logging.getLogger(__name__)

# Stays under the API's 64KB body limit with room for the JSON envelope.
DEFAULT_CHUNK_SIZE = 60_000
STDERR_PREFIX = "[stderr] "


@dataclass(kw_only=True)
class LogBuffer:
    """Captured output per test id, in arrival order."""

    chunks: dict[str, list[str]] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.chunks)

    def __iter__(self) -> Iterator[str]:
        return iter(self.chunks)

    def append(
        self,
        test_id: str,
        text: str | bytes,
        stream: Literal["stdout", "stderr"] = "stdout",
    ) -> None:
        """Append one chunk of output for a test."""
        if isinstance(text, bytes):
            text = text.decode("utf-8", errors="replace")
        if not text:
            return
        if stream == "stderr":
            text = STDERR_PREFIX + text
        self.chunks.setdefault(test_id, []).append(text)

    def content(self, test_id: str) -> str:
        """Return all buffered output of a test as one string."""
        return "".join(self.chunks.get(test_id, ()))


def chunk_text(content: str, size: int = DEFAULT_CHUNK_SIZE) -> Iterator[str]:
    """Split text into consecutive slices of at most ``size`` characters."""
    if size <= 0:
        raise ValueError(f"Chunk size must be positive, got {size}")
    for offset in range(0, len(content), size):
        yield content[offset : offset + size]


async def upload_logs(
    client: LgtmClient,
    run_id: str,
    buffer: LogBuffer,
    title_for: Callable[[str], str],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> int:
    """Upload each test's output, chunked, labelled with the test title.

    Returns the number of chunks uploaded. A failed chunk is logged and the
    upload moves on to the next one.
    """
    uploaded = 0

    for test_id in buffer:
        content = buffer.content(test_id)
        if not content.strip():
            continue

        title = title_for(test_id)
        for index, chunk in enumerate(chunk_text(content, chunk_size)):
            try:
                await client.append_run_log(run_id, content=chunk, step=title)
            except Exception as exc:  # noqa: BLE001
                log.warning(
                    "Failed to upload log chunk %d for %r: %s", index, title, exc
                )
                continue
            uploaded += 1

    log.debug("Uploaded %d log chunk(s) for %d test(s)", uploaded, len(buffer))
    return uploaded
