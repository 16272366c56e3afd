"""Tests for object-hash reconciliation."""

from __future__ import annotations

import shutil
import struct
import subprocess

import pytest

from dotgit.core import objects as objects_module
from dotgit.core.objects import (
    ObjectSet,
    collect_objects,
    loose_object_path,
    pack_paths,
    read_index_hashes,
)
from dotgit.core.pack_index import IDX_SIGNATURE
from dotgit.core.parser import NULL_HASH

SHA_A = "1a410efbd13591db07496601ebc7a059dd55cfe9"
SHA_B = "cfe91a410efbd13591db07496601ebc7a059dd55"
SHA_C = "0123456789abcdef0123456789abcdef01234567"
SHA_D = "89abcdef0123456789abcdef0123456789abcdef"
SHA_E = "fedcba9876543210fedcba9876543210fedcba98"


def write(root, path, data):
    target = root.joinpath(*path.split("/"))
    target.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(data, str):
        data = data.encode()
    target.write_bytes(data)
    return target


class TestObjectSet:
    def test_null_hash_is_excluded(self):
        objects = ObjectSet()
        objects.add("logs", [NULL_HASH, SHA_A])
        assert objects.finalize() == frozenset({SHA_A})
        assert NULL_HASH not in objects

    def test_duplicates_collapse_across_sources(self):
        objects = ObjectSet()
        objects.add("refs", [SHA_A])
        objects.add("logs", [SHA_A, SHA_B])
        objects.add("packs", [SHA_B.upper()])
        assert len(objects) == 2
        assert objects.sources == {"refs": 1, "logs": 2, "packs": 1}

    def test_invalid_hashes_are_ignored(self):
        objects = ObjectSet()
        objects.add("refs", ["not-a-hash", SHA_A[:39]])
        assert len(objects) == 0

    def test_paths(self):
        objects = ObjectSet()
        objects.add("refs", [SHA_B, SHA_A, NULL_HASH])
        assert objects.paths() == [loose_object_path(SHA_A), loose_object_path(SHA_B)]

    def test_loose_object_path(self):
        assert loose_object_path(SHA_A) == ".git/objects/1a/410efbd13591db07496601ebc7a059dd55cfe9"


class TestPackPaths:
    def test_lists_idx_and_pack(self, tmp_path):
        write(tmp_path, ".git/objects/info/packs", f"P pack-{SHA_A}.pack\nP pack-{SHA_A}.pack\n\n")
        assert pack_paths(tmp_path) == [
            f".git/objects/pack/pack-{SHA_A}.idx",
            f".git/objects/pack/pack-{SHA_A}.pack",
        ]

    def test_missing_info_packs(self, tmp_path):
        assert pack_paths(tmp_path) == []


class TestReadIndexHashes:
    def test_missing_index(self, tmp_path):
        assert read_index_hashes(tmp_path / "index") == set()

    def test_garbage_index_contributes_nothing(self, tmp_path):
        path = write(tmp_path, ".git/index", b"<html>Not Found</html>")
        assert read_index_hashes(path) == set()

    @pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
    def test_index_written_by_git(self, tmp_path):
        def git(*args):
            return subprocess.run(
                ["git", *args], cwd=tmp_path, check=True, capture_output=True, text=True
            ).stdout.strip()

        git("init", "-q")
        (tmp_path / "README").write_text("hello\n")
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "app.py").write_text("print(1)\n")
        git("add", "README", "src/app.py")
        expected = {git("hash-object", "README"), git("hash-object", "src/app.py")}

        assert read_index_hashes(tmp_path / ".git" / "index") == expected


class TestCollectObjects:
    @pytest.fixture
    def repo(self, tmp_path, monkeypatch):
        write(tmp_path, ".git/packed-refs", f"# pack-refs with: peeled\n{SHA_A} refs/heads/main\n^{SHA_B}\n")
        write(tmp_path, ".git/refs/heads/dev", f"{SHA_C}\n")
        write(
            tmp_path,
            ".git/logs/HEAD",
            f"{NULL_HASH} {SHA_C} Dev <d@example.com> 1700000000 +0000\tcommit (initial): x\n",
        )
        idx = IDX_SIGNATURE + struct.pack(">II", 2, 1) + struct.pack(
            ">20sII", bytes.fromhex(SHA_D), 12, 0
        )
        write(tmp_path, f".git/objects/pack/pack-{SHA_A}.idx", idx)
        monkeypatch.setattr(objects_module, "read_index_hashes", lambda path: {SHA_E})
        return tmp_path

    def test_gathers_every_source(self, repo):
        objects = collect_objects(repo)
        assert objects.finalize() == frozenset({SHA_A, SHA_B, SHA_C, SHA_D, SHA_E})
        assert objects.sources == {"metadata": 2, "refs": 1, "logs": 2, "index": 1, "packs": 1}

    def test_null_hash_never_scheduled(self, repo):
        assert loose_object_path(NULL_HASH) not in collect_objects(repo).paths()

    def test_malformed_pack_index_is_skipped(self, repo):
        write(repo, f".git/objects/pack/pack-{SHA_B}.idx", b"garbage")
        assert SHA_D in collect_objects(repo)

    def test_empty_tree(self, tmp_path):
        assert len(collect_objects(tmp_path)) == 0
