from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from ig_world.config import archive_roots, config_sha256, load_config
from ig_world.errors import ConfigError


_VALID_YAML = """\
storage:
  dump_dir: ~/ig-world/dumps
  legacy_dump_dirs:
    - ~/old-place/dumps
    - ~/ig-world/dumps
  html_dump_dir: ~/ig-world/html

browser:
  base_url: https://www.instagram.com/
  headless: true

extraction:
  login_icon_threshold: 3
  max_raw_usernames: 20
  reserved_paths:
    - Explore
    - explore
    - direct

crawl:
  steps:
    - path: /
      label: Home Feed
    - path: /explore/
      label: Explore
  settle_seconds: 1.0

chat:
  max_messages: 3

projection:
  max_stories: 6
"""


class TestConfig(unittest.TestCase):
    def test_load_config_ok(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "config.yaml"
            path.write_text(_VALID_YAML, encoding="utf-8")

            cfg = load_config(path)
            self.assertEqual(cfg.browser.base_url, "https://www.instagram.com")
            self.assertTrue(cfg.browser.headless)
            self.assertEqual(cfg.extraction.reserved_paths, ["explore", "direct"])
            self.assertEqual([s.path for s in cfg.crawl.steps], ["/", "/explore/"])
            self.assertEqual(cfg.crawl.post_step_seconds, 1.5)
            self.assertEqual(cfg.chat.max_messages, 3)
            self.assertEqual(cfg.projection.max_stories, 6)

    def test_empty_file_uses_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "config.yaml"
            path.write_text("", encoding="utf-8")

            cfg = load_config(path)
            self.assertEqual(len(cfg.crawl.steps), 5)
            self.assertEqual(cfg.crawl.steps[1].label, "Messages")
            self.assertIn("challenge", cfg.extraction.reserved_paths)
            self.assertEqual(cfg.storage.legacy_dump_dirs, ["~/.instagram-3d-visualizer/scrape-dumps"])

    def test_load_config_rejects_bad_step_path(self) -> None:
        bad_yaml = _VALID_YAML.replace("- path: /explore/", "- path: explore/")
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "config.yaml"
            path.write_text(bad_yaml, encoding="utf-8")

            with self.assertRaises(ConfigError) as ctx:
                load_config(path)
            self.assertIn("crawl.steps.1.path", str(ctx.exception))

    def test_load_config_rejects_unknown_keys(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "config.yaml"
            path.write_text("crawl:\n  retries: 3\n", encoding="utf-8")

            with self.assertRaises(ConfigError):
                load_config(path)

    def test_missing_file(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(ConfigError):
                load_config(Path(td) / "nope.yaml")

    def test_archive_roots_active_first_and_deduped(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "config.yaml"
            path.write_text(_VALID_YAML, encoding="utf-8")
            cfg = load_config(path)

            roots = archive_roots(cfg.storage)
            self.assertEqual(
                roots,
                [
                    Path("~/ig-world/dumps").expanduser(),
                    Path("~/old-place/dumps").expanduser(),
                ],
            )

    def test_config_hash_is_stable(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "config.yaml"
            path.write_text(_VALID_YAML, encoding="utf-8")

            self.assertEqual(config_sha256(load_config(path)), config_sha256(load_config(path)))


if __name__ == "__main__":
    unittest.main()
