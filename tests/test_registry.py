"""Tests for the Target Registry."""

from __future__ import annotations

import threading

import pytest

from keepalive.config import Settings
from keepalive.monitor.registry import TargetRegistry, is_valid_url


class TestConstruction:
    def test_dedupes_in_first_seen_order(self) -> None:
        reg = TargetRegistry(["https://b.test", "https://a.test", "https://b.test"])
        assert reg.urls == ("https://b.test", "https://a.test")

    def test_duplicate_only_input_gives_single_entry(self) -> None:
        reg = TargetRegistry(["https://b.test", "https://b.test"])
        assert len(reg) == 1

    def test_filters_empty_and_non_http(self) -> None:
        reg = TargetRegistry(["", None, "ftp://x.test", "fanfik.test", "http://ok.test"])
        assert reg.urls == ("http://ok.test",)

    def test_primary_then_backups_from_settings(self) -> None:
        cfg = Settings(
            _env_file=None,
            fanfik_url="https://primary.test",
            backup_urls=["https://backup.test", "https://primary.test"],
        )
        reg = TargetRegistry(cfg.initial_urls())
        assert reg.urls == ("https://primary.test", "https://backup.test")

    def test_empty_primary_is_skipped(self) -> None:
        cfg = Settings(_env_file=None, fanfik_url="", backup_urls=["https://backup.test"])
        assert TargetRegistry(cfg.initial_urls()).urls == ("https://backup.test",)


class TestAppend:
    def test_append_new(self) -> None:
        reg = TargetRegistry(["https://a.test"])
        assert reg.append("http://a.test") is True
        assert reg.urls == ("https://a.test", "http://a.test")

    def test_append_existing_is_noop(self) -> None:
        reg = TargetRegistry(["https://a.test"])
        assert reg.append("https://a.test") is False
        assert len(reg) == 1

    def test_append_invalid_rejected(self) -> None:
        reg = TargetRegistry()
        assert reg.append("") is False
        assert reg.append("mailto:x@y") is False
        assert len(reg) == 0

    def test_add_strict_raises(self) -> None:
        reg = TargetRegistry()
        with pytest.raises(ValueError):
            reg.add("not-a-url", strict=True)

    def test_snapshot_is_stable(self) -> None:
        reg = TargetRegistry(["https://a.test"])
        snap = reg.snapshot()
        reg.append("https://b.test")
        assert snap == ("https://a.test",)
        assert "https://b.test" in reg

    def test_concurrent_append_adds_once(self) -> None:
        reg = TargetRegistry(["https://a.test"])
        results: list[bool] = []
        lock = threading.Lock()

        def worker() -> None:
            added = reg.append("http://a.test")
            with lock:
                results.append(added)

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1
        assert len(reg) == 2


@pytest.mark.parametrize(
    ("url", "valid"),
    [
        ("https://a.test", True),
        ("http://a.test", True),
        ("", False),
        (None, False),
        ("ws://a.test", False),
    ],
)
def test_is_valid_url(url, valid) -> None:
    assert is_valid_url(url) is valid
