from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from localfeed.activity_log import ActivityLogger
from localfeed.errors import PolicyViolation


def _records(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


class TestActivityLogger(unittest.TestCase):
    def test_mutation_lines(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "logs" / "activity.jsonl"
            with ActivityLogger.open(path, context_id="tab-a") as log:
                log.info("post_created", post_id="p1")

            (record,) = _records(path)
            self.assertEqual(record["event"], "post_created")
            self.assertEqual(record["level"], "INFO")
            self.assertEqual(record["context_id"], "tab-a")
            self.assertEqual(record["data"], {"post_id": "p1"})
            self.assertIn("ts", record)

    def test_rejection_has_reason_but_no_traceback(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "activity.jsonl"
            with ActivityLogger.open(path) as log:
                log.rejected("post_create", PolicyViolation("blocked"), community_label="Denver")

            (record,) = _records(path)
            self.assertEqual(record["level"], "WARN")
            self.assertEqual(record["event"], "post_create_rejected")
            self.assertEqual(record["data"]["reason"], "PolicyViolation")
            self.assertEqual(record["data"]["message"], "blocked")
            self.assertEqual(record["data"]["community_label"], "Denver")
            self.assertNotIn("error", record["data"])

    def test_failure_records_traceback(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "activity.jsonl"
            with ActivityLogger.open(path) as log:
                try:
                    raise ValueError("boom")
                except ValueError as e:
                    log.failed("command", e, command="post")

            (record,) = _records(path)
            self.assertEqual(record["level"], "ERROR")
            self.assertEqual(record["event"], "command_failed")
            self.assertEqual(record["data"]["command"], "post")
            self.assertEqual(record["data"]["error"]["type"], "ValueError")
            self.assertIn("boom", record["data"]["error"]["traceback"])

    def test_reopening_appends(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "activity.jsonl"
            with ActivityLogger.open(path, context_id="a") as log:
                log.info("one")
            with ActivityLogger.open(path, context_id="b") as log:
                log.info("two")
            self.assertEqual([r["context_id"] for r in _records(path)], ["a", "b"])

    def test_lines_after_close_are_dropped(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "activity.jsonl"
            log = ActivityLogger.open(path)
            log.close()
            self.assertTrue(log.closed)
            log.info("late")
            log.close()
            self.assertEqual(path.read_text(encoding="utf-8"), "")


if __name__ == "__main__":
    unittest.main()
