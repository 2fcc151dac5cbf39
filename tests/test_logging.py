import json
import threading
from pathlib import Path

from subtitle_converter.logging import BatchSummary, RunLogEntry, RunLogger, StageTimings, append_summary_row


def test_run_logger_is_safe_across_threads(tmp_path: Path) -> None:
    log_file = tmp_path / "runs.jsonl"
    logger = RunLogger(log_file)

    def write(index: int) -> None:
        logger.append(
            RunLogEntry(
                source=f"ep{index}.srt",
                status="success",
                encoding="utf-8",
                error_code=None,
                timings=StageTimings(read_ms=1.0),
                output_path=f"ep{index}.utf8.srt",
                backup_path=None,
                size_bytes=10,
            )
        )

    threads = [threading.Thread(target=write, args=(index,)) for index in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    lines = log_file.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 8
    assert json.loads(lines[0])["timings"]["read_ms"] == 1.0


def test_summary_rows_accumulate(tmp_path: Path) -> None:
    path = tmp_path / "summary.csv"
    append_summary_row(path, BatchSummary(pattern="*.srt", total=2, successful=2).as_row("batch-1"))
    append_summary_row(path, BatchSummary(pattern="*.ass", total=1, failed=1).as_row("batch-2"))
    rows = path.read_text(encoding="utf-8").splitlines()
    assert len(rows) == 3
    assert rows[1].startswith("batch-1,")
    assert rows[2].split(",")[2] == "*.ass"
