from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from ig_world.chat import ChatTranscript
from ig_world.config_schema import AppConfig
from ig_world.dumps import DumpFile, DumpStore
from ig_world.offline import OfflineBrowser
from ig_world.records import ErrorResult, PageScrapeRecord, StoryEntry
from ig_world.session import ScrapeSession


def _session(td: str, browser=None) -> ScrapeSession:
    store = DumpStore([Path(td) / "dumps"], html_dir=Path(td) / "html")
    return ScrapeSession(browser, store, AppConfig(), sleep_fn=lambda _s: None)


class _BrokenDomBrowser(OfflineBrowser):
    def read_dom(self) -> str:
        raise RuntimeError("Execution context was destroyed")


class _AbortingNavigationBrowser(OfflineBrowser):
    def __init__(self, *, fail_on: str) -> None:
        super().__init__()
        self._fail_on = fail_on

    def navigate_to(self, path: str) -> None:
        if self._fail_on in path:
            raise RuntimeError("net::ERR_ABORTED")
        super().navigate_to(path)


class TestScrapeSession(unittest.TestCase):
    def test_extract_current_page_writes_dump(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            session = _session(td, OfflineBrowser())

            record = session.extract_current_page()

            self.assertIsInstance(record, PageScrapeRecord)
            assert isinstance(record, PageScrapeRecord)
            self.assertEqual(record.page_type, "home")
            self.assertIsInstance(session.last_dump, DumpFile)
            self.assertEqual(len(session.list_dumps()), 1)
            # extraction alone does not merge
            self.assertTrue(session.dataset.is_empty())

    def test_browser_not_open(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            result = _session(td).extract_current_page()
            self.assertEqual(result, ErrorResult(error="Browser not open", kind="browser_unavailable"))

            browser = OfflineBrowser()
            browser.close()
            closed = _session(td, browser).extract_current_page()
            self.assertEqual(closed, ErrorResult(error="Browser not open", kind="browser_unavailable"))

    def test_merge_and_stats(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            session = _session(td)
            record = PageScrapeRecord(
                page_url="https://www.instagram.com/",
                stories=(StoryEntry("alex"),),
                raw_usernames=("alex", "bo"),
            )

            session.merge_into_session(record)
            session.merge_into_session(record)

            stats = session.get_session_stats()
            self.assertEqual(stats["stories"], 1)
            self.assertEqual(stats["usernames"], 2)

            session.reset()
            self.assertTrue(session.dataset.is_empty())

    def test_run_auto_crawl_offline(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            browser = OfflineBrowser()
            session = _session(td, browser)

            statuses = list(session.run_auto_crawl())

            self.assertEqual(len(statuses), 5)
            self.assertTrue(all(s.ok for s in statuses))
            self.assertEqual(
                session.get_session_stats(),
                {
                    "stories": 2,
                    "posts": 2,
                    "messages": 2,
                    "notifications": 5,
                    "mutuals": 1,
                    "suggestions": 2,
                    "usernames": 8,
                },
            )
            self.assertEqual(len(session.list_dumps()), 5)

            world = session.project_for_display()
            self.assertEqual(len(world.posts), 2)
            self.assertEqual(world.profile.followers, 8)

    def test_run_auto_crawl_without_browser_fails_every_step(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            statuses = list(_session(td).run_auto_crawl())

            self.assertEqual(len(statuses), 5)
            self.assertTrue(all(not s.ok for s in statuses))
            self.assertEqual({s.error for s in statuses}, {"Browser not open"})
            self.assertEqual(statuses[0].step.label, "Home Feed")

            custom = list(_session(td).run_auto_crawl([("/explore/", "Explore")]))
            self.assertEqual([(s.step.path, s.status) for s in custom], [("/explore/", "failed")])

    def test_load_dump_merges(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            scraper = _session(td, OfflineBrowser())
            scraper.extract_current_page()
            dump = scraper.last_dump
            assert isinstance(dump, DumpFile)

            reader = _session(td)
            record = reader.load_dump(dump.filepath)

            self.assertIsInstance(record, PageScrapeRecord)
            self.assertEqual(reader.get_session_stats()["stories"], 2)

            bad = reader.load_dump(Path(td) / "missing.json")
            self.assertIsInstance(bad, ErrorResult)

    def test_load_all_dumps_replaces_dataset(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            scraper = _session(td, OfflineBrowser())
            list(scraper.run_auto_crawl())

            reader = _session(td)
            reader.merge_into_session(
                PageScrapeRecord(page_url="x", stories=(StoryEntry("stale"),))
            )
            dataset = reader.load_all_dumps()

            self.assertNotIn("user:stale", dataset.stories)
            self.assertEqual(dataset.stats(), scraper.get_session_stats())

    def test_dump_html(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            session = _session(td, OfflineBrowser())

            saved = session.dump_html("home")

            assert isinstance(saved, DumpFile)
            self.assertEqual(saved.filepath.parent, Path(td) / "html")
            self.assertIn("maya.lifts", saved.filepath.read_text(encoding="utf-8"))

            self.assertIsInstance(_session(td).dump_html("home"), ErrorResult)

    def test_scrape_user_chat_returns_to_previous_page(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            browser = OfflineBrowser()
            browser.navigate_to("/explore/")
            session = _session(td, browser)

            transcript = session.scrape_user_chat("@maya.lifts")

            self.assertIsInstance(transcript, ChatTranscript)
            assert isinstance(transcript, ChatTranscript)
            self.assertEqual(transcript.username, "maya.lifts")
            self.assertEqual(
                [(m.text, m.is_me) for m in transcript.messages],
                [
                    ("are we still on for the park session?", False),
                    ("yes! bringing the rings this time", True),
                ],
            )
            self.assertEqual(browser.visited[-2:], ["/direct/t/maya.lifts/", "/explore/"])

    def test_scrape_user_chat_without_browser(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            result = _session(td).scrape_user_chat("maya.lifts")
            self.assertIsInstance(result, ErrorResult)
            assert isinstance(result, ErrorResult)
            self.assertEqual(result.kind, "browser_unavailable")

    def test_browser_read_failure_becomes_extraction_error(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            session = _session(td, _BrokenDomBrowser())

            result = session.extract_current_page()
            self.assertIsInstance(result, ErrorResult)
            assert isinstance(result, ErrorResult)
            self.assertEqual(result.kind, "extraction")
            self.assertIn("Execution context was destroyed", result.error)

            snapshot = session.dump_html("home")
            self.assertIsInstance(snapshot, ErrorResult)
            assert isinstance(snapshot, ErrorResult)
            self.assertEqual(snapshot.kind, "extraction")

    def test_scrape_user_chat_navigation_failure(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            browser = _AbortingNavigationBrowser(fail_on="/direct/t/")
            browser.navigate_to("/explore/")
            session = _session(td, browser)

            result = session.scrape_user_chat("maya.lifts")

            self.assertIsInstance(result, ErrorResult)
            assert isinstance(result, ErrorResult)
            self.assertEqual(result.kind, "extraction")
            self.assertIn("ERR_ABORTED", result.error)
            self.assertEqual(browser.visited[-1], "/explore/")

    def test_scrape_user_chat_keeps_transcript_when_return_fails(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            browser = _AbortingNavigationBrowser(fail_on="instagram.com")
            browser.navigate_to("/explore/")
            session = _session(td, browser)

            transcript = session.scrape_user_chat("maya.lifts")

            self.assertIsInstance(transcript, ChatTranscript)
            assert isinstance(transcript, ChatTranscript)
            self.assertEqual(len(transcript.messages), 2)
            self.assertEqual(browser.visited[-1], "/direct/t/maya.lifts/")


if __name__ == "__main__":
    unittest.main()
