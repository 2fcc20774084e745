from __future__ import annotations

from .config import archive_roots, config_sha256, load_config
from .config_schema import AppConfig
from .dumps import DumpStore
from .errors import ConfigError
from .extractor import PageRecordExtractor
from .merge import SessionDataset, merge_record
from .projection import WorldDataProjector
from .records import ErrorResult, PageScrapeRecord

__all__ = [
    "AppConfig",
    "ConfigError",
    "DumpStore",
    "ErrorResult",
    "PageRecordExtractor",
    "PageScrapeRecord",
    "SessionDataset",
    "WorldDataProjector",
    "archive_roots",
    "config_sha256",
    "load_config",
    "merge_record",
]
