# tests/unit/logging/test_unit_handlers.py - v2
"""Tests for logging/handlers.py - file rotation handler."""

from __future__ import annotations

import pytest

from schedulebud.logging.handlers import create_rotating_handler, parse_size


class TestParseSize:
    def test_mb(self):
        assert parse_size("10MB") == 10 * 1024 * 1024

    def test_kb(self):
        assert parse_size("512KB") == 512 * 1024

    def test_decimal_gb(self):
        assert parse_size("1.5GB") == int(1.5 * 1024**3)

    def test_case_insensitive(self):
        assert parse_size("10mb") == 10 * 1024 * 1024

    def test_bare_bytes(self):
        assert parse_size("2048") == 2048
        assert parse_size(4096) == 4096

    def test_invalid_format(self):
        with pytest.raises(ValueError, match="Invalid size"):
            parse_size("10bytes")

    def test_zero_rejected(self):
        with pytest.raises(ValueError, match="positive"):
            parse_size("0MB")


class TestCreateRotatingHandler:
    def test_creates_handler(self, tmp_path):
        handler = create_rotating_handler(tmp_path / "test.log", rotation="1MB", retention=5)
        assert handler.maxBytes == 1024 * 1024
        assert handler.backupCount == 5
        handler.close()

    def test_creates_parent_dirs_lazily(self, tmp_path):
        log_file = tmp_path / "subdir" / "deep" / "test.log"
        handler = create_rotating_handler(log_file)
        assert log_file.parent.exists()
        assert not log_file.exists()
        handler.close()
