"""
Append-only output stores: channel records, failed requests, error snapshots.

Each JSONL append is a single write plus flush under an asyncio.Lock, so
concurrent workers never interleave partial lines.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import asdict, is_dataclass
from pathlib import Path


logger = logging.getLogger(__name__)

RECORDS_FILENAME = 'channels.jsonl'
FAILED_FILENAME = 'failed_requests.jsonl'
SNAPSHOT_DIRNAME = 'snapshots'


def _as_dict(item) -> dict:
    return asdict(item) if is_dataclass(item) else dict(item)


class JsonlWriter:
    def __init__(self, path: Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = asyncio.Lock()
        self.count = 0

    async def append(self, item) -> None:
        line = json.dumps(_as_dict(item), ensure_ascii=False) + '\n'
        async with self._lock:
            with open(self.path, 'a', encoding='utf-8') as f:
                f.write(line)
                f.flush()
            self.count += 1

    def read_all(self) -> list[dict]:
        if not self.path.exists():
            return []
        with open(self.path, encoding='utf-8') as f:
            return [json.loads(line) for line in f if line.strip()]


class JsonlDatasetSink(JsonlWriter):
    """One ChannelRecord per line in <output_dir>/channels.jsonl."""

    def __init__(self, output_dir: Path):
        super().__init__(Path(output_dir) / RECORDS_FILENAME)


class FailedRequestLog(JsonlWriter):
    """Terminal failures in <output_dir>/failed_requests.jsonl."""

    def __init__(self, output_dir: Path):
        super().__init__(Path(output_dir) / FAILED_FILENAME)


class BufferedSink:
    """Holds records in memory and writes them to the inner sink on flush()."""

    def __init__(self, inner):
        self.inner = inner
        self.pending: list = []

    async def append(self, item) -> None:
        self.pending.append(item)

    async def flush(self) -> int:
        written = 0
        for item in self.pending:
            await self.inner.append(item)
            written += 1
        self.pending.clear()
        logger.info("Flushed %d buffered records", written)
        return written


class SnapshotStore:
    """PNG snapshots written as <dir>/<key>.png."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def save(self, key: str, png: bytes) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / f"{key}.png"
        path.write_bytes(png)
        return path
