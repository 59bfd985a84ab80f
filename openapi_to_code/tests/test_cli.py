"""
Tests for the openapi_to_code command line.
"""

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from openapi_to_code.openapi_to_code import openapi_to_code

SAMPLE = Path(__file__).parent / "test_data" / "sample.yaml"


def run(*args: str):
    return CliRunner().invoke(openapi_to_code, list(args))


class TestCli:
    def test_generates_elm_by_default(self, tmp_path):
        result = run("-i", str(SAMPLE), "-o", str(tmp_path))
        assert result.exit_code == 0, result.output
        assert f"[WRITE] {tmp_path / 'Api' / 'Schemas.elm'}" in result.output
        assert "1 diagnostic(s):" in result.output
        assert "PUT /labels" in result.output

    def test_second_run_skips_unless_forced(self, tmp_path):
        run("-i", str(SAMPLE), "-o", str(tmp_path))
        skipped = run("-i", str(SAMPLE), "-o", str(tmp_path))
        assert "[SKIP]" in skipped.output
        forced = run("-i", str(SAMPLE), "-o", str(tmp_path), "--force")
        assert "[SKIP]" not in forced.output

    def test_python_target_and_prefix(self, tmp_path):
        result = run("-i", str(SAMPLE), "-o", str(tmp_path), "-t", "python", "-p", "shop")
        assert result.exit_code == 0, result.output
        assert (tmp_path / "shop" / "schemas.py").is_file()
        assert (tmp_path / "shop" / "runtime.py").is_file()
        assert (tmp_path / "shop" / "__init__.py").is_file()

    def test_config_file(self, tmp_path):
        config = tmp_path / "config.json"
        config.write_text(json.dumps({"module_prefix": "Store", "generation_timestamp": "fixed"}))
        out = tmp_path / "out"
        result = run("-i", str(SAMPLE), "-o", str(out), "-c", str(config))
        assert result.exit_code == 0, result.output
        assert "Generated by openapi_to_code on fixed." in (out / "Store" / "Schemas.elm").read_text()

    def test_unparseable_document(self, tmp_path):
        broken = tmp_path / "broken.yaml"
        broken.write_text("title: not an api\n")
        result = run("-i", str(broken), "-o", str(tmp_path / "out"))
        assert result.exit_code == 1
        assert "Could not parse API description" in result.output
        assert not (tmp_path / "out").exists()

    def test_rejected_template(self, tmp_path):
        template = tmp_path / "module.elm.jinja2"
        template.write_text("{{ types }}")
        result = run("-i", str(SAMPLE), "-o", str(tmp_path / "out"), "--template", str(template))
        assert result.exit_code == 1
        assert "missing required placeholders" in result.output
