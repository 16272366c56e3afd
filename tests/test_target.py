"""Tests for base URL normalisation and path safety."""

from __future__ import annotations

import pytest

from dotgit.core.errors import InvalidTarget, UnsafePath
from dotgit.core.target import Target, is_safe_path


class TestFromUrl:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("http://example.com/.git", "http://example.com"),
            ("http://example.com/.git/", "http://example.com"),
            ("http://example.com/.git/HEAD", "http://example.com"),
            ("http://example.com/app/.git/HEAD", "http://example.com/app"),
            ("https://example.com/a/b/.git/objects/info/packs", "https://example.com/a/b"),
        ],
    )
    def test_strips_git_segment_and_below(self, raw, expected):
        assert Target.from_url(raw).url == expected

    def test_first_git_segment_wins(self):
        assert Target.from_url("http://h/a/.git/b/.git/HEAD").url == "http://h/a"

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("http://example.com", "http://example.com"),
            ("http://example.com/", "http://example.com"),
            ("http://example.com/app", "http://example.com/app"),
            ("http://example.com/app/", "http://example.com/app"),
        ],
    )
    def test_without_git_segment_keeps_full_path(self, raw, expected):
        assert Target.from_url(raw).url == expected

    def test_drops_query_and_fragment(self):
        assert Target.from_url("http://h/app/?x=1#frag").url == "http://h/app"

    def test_segments(self):
        assert Target.from_url("http://h/a/b/.git").segments == ["a", "b"]

    def test_keeps_port(self):
        assert Target.from_url("http://h:8080/x/.git").url == "http://h:8080/x"

    @pytest.mark.parametrize(
        "raw",
        ["mailto:someone@example.com", "data:text/plain,hello", "example.com/.git", ""],
    )
    def test_opaque_urls_are_rejected(self, raw):
        with pytest.raises(InvalidTarget):
            Target.from_url(raw)

    def test_unsupported_scheme(self):
        with pytest.raises(InvalidTarget, match="scheme"):
            Target.from_url("ftp://example.com/.git")


class TestUrlFor:
    def test_joins_relative_path(self):
        target = Target.from_url("http://h/app/.git")
        assert target.url_for(".git/HEAD") == "http://h/app/.git/HEAD"

    def test_root_target(self):
        target = Target.from_url("http://h/")
        assert target.url_for(".git/") == "http://h/.git/"

    @pytest.mark.parametrize(
        "path",
        ["/etc/passwd", "../secret", ".git/../../x", "http://evil.test/x", ".git/HEAD?x", ""],
    )
    def test_refuses_paths_outside_base(self, path):
        with pytest.raises(UnsafePath):
            Target.from_url("http://h/app").url_for(path)


class TestIsSafePath:
    def test_accepts_nested_paths(self):
        assert is_safe_path(".git/refs/heads/feature-x")
        assert is_safe_path(".git/objects/")

    def test_rejects_dot_segments(self):
        assert not is_safe_path(".git/./HEAD")
        assert not is_safe_path(".git//HEAD")
        assert not is_safe_path(".git\\HEAD")
