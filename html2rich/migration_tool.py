"""
High-level orchestration of batch HTML -> rich-text conversion.

This module defines a :class:`ConversionTool` class that ties together the
markup extractor, the conversion core and the reporting utilities.  It reads
HTML files, converts each one independently, writes the canonical result as
JSON and records per-document outcomes under ``reports/conversion``.

Configuration is supplied via a JSON file path or directly as a dictionary
and may be overridden by the ``HTML2RICH_STRICT_QUARANTINE`` and
``HTML2RICH_MAX_DEPTH`` environment variables.  The merged dictionary is
validated into an immutable :class:`ConverterConfig`, which is shared by all
worker threads.
"""

from __future__ import annotations

import json
import os
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from html2rich.extractors.markup import read_markup
from html2rich.models.config import ConverterConfig
from html2rich.models.result import ConversionResult
from html2rich.parsers.converter import convert_tree
from html2rich.utils.errors import report_error, report_ok

CONFIG_FILE = "config/converter_config.json"
LOG_FILE = "reports/conversion/conversion.log"


def _env_flag(name: str) -> Optional[bool]:
    value = os.getenv(name)
    if value is None or value == "":
        return None
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    if not value:
        return None
    return int(value)


class ConversionTool:
    """
    Encapsulates the state required to convert a batch of legacy HTML
    documents.  Each document is converted in isolation; a failing document
    never stops the batch.  Success and failure information is recorded
    using the :mod:`html2rich.utils.errors` module.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None, *, config_file: Optional[str] = None) -> None:
        if config_file and os.path.exists(config_file):
            with open(config_file, "r", encoding="utf-8") as f:
                config = json.load(f)
        elif config is None:
            config = {}

        config = dict(config)
        strict = _env_flag("HTML2RICH_STRICT_QUARANTINE")
        if strict is not None:
            config.pop("strictQuarantine", None)
            config["strict_quarantine"] = strict
        max_depth = _env_int("HTML2RICH_MAX_DEPTH")
        if max_depth is not None:
            config.pop("maxDepth", None)
            config["max_depth"] = max_depth

        self.raw_config = config
        self.config = ConverterConfig.from_mapping(config)

    def log_message(self, message: str, level: str = "INFO") -> None:
        print(f"[{level}] {message}")
        os.makedirs(os.path.dirname(LOG_FILE), exist_ok=True)
        with open(LOG_FILE, "a", encoding="utf-8") as f:
            f.write(f"{datetime.now().isoformat(timespec='seconds')} {level}: {message}\n")

    def convert_file(self, path: str, out_dir: Optional[str] = None) -> Optional[ConversionResult]:
        """Convert one HTML file; returns ``None`` when it cannot be read."""
        try:
            tree = read_markup(path)
        except (OSError, UnicodeDecodeError) as e:
            report_error("DOCUMENT_UNREADABLE", path, e)
            return None

        result = convert_tree(tree, self.config)
        summary = {
            "quarantined": len(result.quarantine),
            "unmapped": [u.tag for u in result.unmapped_tags],
            "events": len(result.events),
        }
        if result.ok:
            report_ok("DOCUMENT_CONVERTED", path, summary)
        else:
            report_error(
                "DOCUMENT_FAILED",
                path,
                extra={**summary, "reason": result.error.code, "detail": result.error.message},
            )

        if out_dir:
            os.makedirs(out_dir, exist_ok=True)
            name = os.path.splitext(os.path.basename(path))[0] + ".json"
            with open(os.path.join(out_dir, name), "w", encoding="utf-8") as f:
                json.dump(result.to_dict(), f, ensure_ascii=False, indent=2)
        return result

    def convert_files(
        self, paths: Iterable[str], out_dir: Optional[str] = None, *, workers: int = 1
    ) -> Dict[str, Optional[ConversionResult]]:
        paths = list(paths)
        self.log_message(f"Converting {len(paths)} document(s) with {workers} worker(s)")
        if workers <= 1:
            results: List[Optional[ConversionResult]] = [self.convert_file(p, out_dir) for p in paths]
        else:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                results = list(pool.map(lambda p: self.convert_file(p, out_dir), paths))

        outcome = dict(zip(paths, results))
        failed = [p for p, r in outcome.items() if r is None or not r.ok]
        self.log_message(f"Converted {len(paths) - len(failed)} document(s), {len(failed)} failed")
        if failed:
            self.log_message(f"Failed documents: {failed}", level="WARNING")
        return outcome
