import re

import pytest

from compression_worker.storage.paths import build_object_path, random_suffix, sanitize_name


class TestSanitizeName:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("scan.ply", "scan"),
            ("my scan (1).ply", "my_scan_1"),
            ("dir/inner.ply", "inner"),
            ("noext", "noext"),
            (".ply", "ply"),
            ("???.ply", "file"),
        ],
    )
    def test_sanitizes(self, name: str, expected: str) -> None:
        assert sanitize_name(name) == expected


class TestRandomSuffix:
    def test_is_six_base36_chars(self) -> None:
        assert re.fullmatch(r"[0-9a-z]{6}", random_suffix())


class TestBuildObjectPath:
    def test_deterministic_parts(self) -> None:
        path = build_object_path(
            "p1", "scan.ply", "pcsogs", timestamp_ms=1700000000000, suffix="abc123"
        )

        assert path == "p1/1700000000000-abc123-scan.pcsogs"

    def test_strips_leading_dot_from_extension(self) -> None:
        path = build_object_path("p1", "scan.ply", ".pcsogs", timestamp_ms=1, suffix="x")

        assert path == "p1/1-x-scan.pcsogs"

    def test_generated_paths_are_unique(self) -> None:
        first = build_object_path("p1", "scan.ply", "pcsogs")
        second = build_object_path("p1", "scan.ply", "pcsogs")

        assert re.fullmatch(r"p1/\d{13}-[0-9a-z]{6}-scan\.pcsogs", first)
        assert first != second
