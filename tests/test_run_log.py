from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from ig_world.run_log import RunLogger, read_events


class TestRunLogger(unittest.TestCase):
    def test_writes_jsonl_events(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "logs" / "run.log"

            with RunLogger.open(path, session_id="s1") as log:
                log.info("dump_saved", url="https://www.instagram.com/", size=12)
                log.set_crawl_id("c1")
                log.warning("crawl_step_failed", index=2)
                try:
                    raise ValueError("boom")
                except ValueError as e:
                    log.exception("page_extraction_failed", exc=e)

            events = read_events(path)

        self.assertEqual([e["event"] for e in events], ["dump_saved", "crawl_step_failed", "page_extraction_failed"])
        self.assertEqual(events[0]["level"], "INFO")
        self.assertEqual(events[0]["session_id"], "s1")
        self.assertEqual(events[0]["url"], "https://www.instagram.com/")
        self.assertEqual(events[0]["data"], {"size": 12})
        self.assertNotIn("crawl_id", events[0])
        self.assertEqual(events[1]["level"], "WARN")
        self.assertEqual(events[1]["crawl_id"], "c1")
        self.assertEqual(events[2]["data"]["error"]["type"], "ValueError")
        self.assertIn("boom", events[2]["data"]["error"]["traceback"])

    def test_overwrite_and_append(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "run.log"

            with RunLogger.open(path) as log:
                log.info("first")
            with RunLogger.open(path, overwrite=False) as log:
                log.info("second")
            self.assertEqual([e["event"] for e in read_events(path)], ["first", "second"])

            with RunLogger.open(path, overwrite=True) as log:
                log.info("third")
            self.assertEqual([e["event"] for e in read_events(path)], ["third"])

    def test_read_events_skips_garbage(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "run.log"
            path.write_text('{"event": "ok"}\nnot json\n[1]\n\n', encoding="utf-8")
            self.assertEqual(read_events(path), [{"event": "ok"}])


if __name__ == "__main__":
    unittest.main()
