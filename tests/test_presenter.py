import json
from pathlib import Path

from orchestrate.config import RunOptions
from orchestrate.presenter import describe_inputs, format_banner, format_summary, write_summary_json
from orchestrate.runner import CrawlSummary


def test_describe_inputs():
    options = RunOptions(start_urls=["@a", "@b"], keywords=["cooking"], limit=3, csv_content="url\n@c\n")
    assert describe_inputs(options) == "2 start URLs, inline CSV, 1 keywords x 3"
    assert describe_inputs(RunOptions()) == "no inputs"


def test_banner_mentions_limits():
    lines = format_banner(RunOptions(max_concurrency=4, max_retries=2, proxy_urls=["http://p:1"]))
    banner = "\n".join(lines)
    assert "Concurrency: 1-4" in banner
    assert "retries: 2" in banner
    assert "Proxies: 1" in banner


def test_summary_lines():
    summary = CrawlSummary(
        total=5, succeeded=3, failed=1, skipped=1, retries=2, duration_secs=12.5, capped=True,
        failures_by_category={"captcha": 1},
    )
    text = "\n".join(format_summary(summary))
    assert "Completed: 3/5 channels (75.0% of processed)" in text
    assert "Failed: 1, skipped: 1, retries: 2" in text
    assert "Stopped early" in text
    assert "captcha=1" in text


def test_write_summary_json(tmp_path: Path):
    summary = CrawlSummary(total=2, succeeded=1, failed=1, failures_by_category={"not_found": 1})
    path = write_summary_json(summary, tmp_path / "out")
    data = json.loads(path.read_text(encoding="utf-8"))
    assert path.name == "run_summary.json"
    assert data["succeeded"] == 1
    assert data["success_rate"] == 0.5
    assert data["failures_by_category"] == {"not_found": 1}
    assert "finished_at" in data
