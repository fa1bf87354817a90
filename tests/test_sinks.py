import asyncio
from pathlib import Path

from harvest.config import ChannelRecord, FailedRequest
from harvest.sinks import (
    BufferedSink,
    FailedRequestLog,
    JsonlDatasetSink,
    SnapshotStore,
)

from fakes import MemorySink


def test_concurrent_appends_write_whole_lines(tmp_path: Path):
    sink = JsonlDatasetSink(tmp_path / "out")

    async def write_all():
        await asyncio.gather(*(
            sink.append(ChannelRecord(channel_url=f"https://www.youtube.com/@c{i}", description="x" * 5000))
            for i in range(20)
        ))

    asyncio.run(write_all())

    rows = sink.read_all()
    assert sink.path.name == "channels.jsonl"
    assert sink.count == 20
    assert sorted(r["channel_url"] for r in rows) == sorted(f"https://www.youtube.com/@c{i}" for i in range(20))
    assert rows[0]["instagram_urls"] == []


def test_failed_request_log(tmp_path: Path):
    log = FailedRequestLog(tmp_path)
    entry = FailedRequest(
        url="https://www.youtube.com/@gone",
        error="Invalid response status from YouTube: 404",
        category="not_found",
        attempts=1,
        timestamp="2026-01-01T00:00:00+00:00",
        input_source="direct",
        input_origin="0",
    )
    asyncio.run(log.append(entry))
    assert log.path == tmp_path / "failed_requests.jsonl"
    assert log.read_all() == [{
        "url": "https://www.youtube.com/@gone",
        "error": "Invalid response status from YouTube: 404",
        "category": "not_found",
        "attempts": 1,
        "timestamp": "2026-01-01T00:00:00+00:00",
        "input_source": "direct",
        "input_origin": "0",
    }]


def test_read_all_before_any_write(tmp_path: Path):
    assert JsonlDatasetSink(tmp_path).read_all() == []


def test_buffered_sink_writes_on_flush():
    inner = MemorySink()
    sink = BufferedSink(inner)
    asyncio.run(sink.append("a"))
    asyncio.run(sink.append("b"))
    assert inner.items == []

    assert asyncio.run(sink.flush()) == 2
    assert inner.items == ["a", "b"]
    assert sink.pending == []


def test_snapshot_store(tmp_path: Path):
    store = SnapshotStore(tmp_path / "snapshots")
    path = store.save("ERROR-x-1", b"png")
    assert path == tmp_path / "snapshots" / "ERROR-x-1.png"
    assert path.read_bytes() == b"png"
