"""
Tests for writing module units to disk.
"""

from __future__ import annotations

from openapi_to_code.output import WriteAction, write_atomic, write_modules
from openapi_to_code.pipeline import ModuleUnit


def unit(path: str, source: str) -> ModuleUnit:
    return ModuleUnit(qualified_name=path.replace("/", "."), relative_path=path, source=source)


class TestWriteModules:
    def test_creates_directories(self, tmp_path):
        results = write_modules(tmp_path / "out", [unit("Api/Schemas.elm", "module Api.Schemas exposing (..)\n")])
        target = tmp_path / "out" / "Api" / "Schemas.elm"
        assert target.read_text() == "module Api.Schemas exposing (..)\n"
        assert [r.action for r in results] == [WriteAction.WRITE]
        assert str(results[0]) == f"[WRITE] {target}"

    def test_existing_files_are_skipped(self, tmp_path):
        target = tmp_path / "a.py"
        target.write_text("original")
        results = write_modules(tmp_path, [unit("a.py", "new"), unit("b.py", "fresh")])
        assert target.read_text() == "original"
        assert [r.action for r in results] == [WriteAction.SKIP, WriteAction.WRITE]
        assert str(results[0]).endswith("exists (use --force to overwrite)")

    def test_force_overwrites(self, tmp_path):
        target = tmp_path / "a.py"
        target.write_text("original")
        results = write_modules(tmp_path, [unit("a.py", "new")], force=True)
        assert target.read_text() == "new"
        assert results[0].action == WriteAction.WRITE


def test_write_atomic_leaves_no_temporary_files(tmp_path):
    write_atomic(tmp_path / "module.py", "x = 1\n")
    assert [p.name for p in tmp_path.iterdir()] == ["module.py"]
