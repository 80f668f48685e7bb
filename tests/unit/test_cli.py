"""Tests for the relquery command-line interface."""
from __future__ import annotations

from pathlib import Path

from click.testing import CliRunner

from relquery import __version__
from relquery.cli.main import cli


def _make_runner() -> CliRunner:
    return CliRunner()


def _write(tmp_path: Path, name: str, text: str) -> str:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return str(path)


# ===========================================================================
# version and stores
# ===========================================================================


class TestInfoCommands:
    def test_version(self) -> None:
        result = _make_runner().invoke(cli, ["version"])
        assert result.exit_code == 0
        assert f"v{__version__}" in result.output

    def test_stores_lists_memory(self) -> None:
        result = _make_runner().invoke(cli, ["stores"])
        assert result.exit_code == 0
        assert "memory" in result.output

    def test_help(self) -> None:
        result = _make_runner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "query" in result.output


# ===========================================================================
# schema
# ===========================================================================


class TestSchemaCommand:
    def test_json_includes_synthesized_inverses(self, schema_file: Path) -> None:
        result = _make_runner().invoke(cli, ["schema", str(schema_file), "--format", "json"])
        assert result.exit_code == 0, result.output
        assert '"collectors"' in result.output
        assert '"manyToOne"' in result.output

    def test_yaml(self, schema_file: Path) -> None:
        result = _make_runner().invoke(cli, ["schema", str(schema_file), "--format", "yaml"])
        assert result.exit_code == 0, result.output
        assert "collector_one_one" in result.output

    def test_table(self, schema_file: Path) -> None:
        result = _make_runner().invoke(cli, ["schema", str(schema_file)])
        assert result.exit_code == 0, result.output
        assert "schema v1" in result.output

    def test_missing_file(self, tmp_path: Path) -> None:
        result = _make_runner().invoke(cli, ["schema", str(tmp_path / "nope.yaml")])
        assert result.exit_code == 1
        assert "File not found" in result.output

    def test_invalid_schema_prints_diagnostics(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path,
            "bad.yaml",
            "types:\n  - name: collector\n    attributes:\n      stamps: {nature: manyWay, target: stamp}\n",
        )
        result = _make_runner().invoke(cli, ["schema", path])
        assert result.exit_code == 1
        assert "RQ001" in result.output

    def test_unloadable_schema(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "bad.yaml", "types:\n  - name: stamp\n    attributes:\n      name: {}\n")
        result = _make_runner().invoke(cli, ["schema", path])
        assert result.exit_code == 1
        assert "Schema error" in result.output

    def test_strict_rejects_warnings(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path,
            "warn.yaml",
            "types:\n"
            "  - name: stamp\n"
            "  - name: collector\n"
            "    attributes:\n"
            "      stamps: {nature: manyWay, target: stamp, targetAttribute: owners}\n",
        )
        runner = _make_runner()
        relaxed = runner.invoke(cli, ["schema", path, "--format", "json"])
        assert relaxed.exit_code == 0
        assert "RQ006" in relaxed.output
        strict = runner.invoke(cli, ["schema", path, "--strict"])
        assert strict.exit_code == 1


# ===========================================================================
# query and count
# ===========================================================================


class TestQueryCommand:
    def test_filter_json(self, schema_file: Path, data_file: Path) -> None:
        result = _make_runner().invoke(
            cli,
            ["query", str(schema_file), str(data_file), "collector", "-w", "stamps.name=1946", "--format", "json"],
        )
        assert result.exit_code == 0, result.output
        assert "Bernard" in result.output
        assert "Isabelle" in result.output
        assert "Emma" not in result.output

    def test_sort_descending(self, schema_file: Path, data_file: Path) -> None:
        result = _make_runner().invoke(
            cli,
            [
                "query", str(schema_file), str(data_file), "stamp",
                "-s", "collector.name:DESC",
                "--count", "collectors",
                "--format", "json",
            ],
        )
        assert result.exit_code == 0, result.output
        out = result.output
        assert out.index('"1948"') < out.index('"1947"') < out.index('"1946"')

    def test_populate_yaml(self, schema_file: Path, data_file: Path) -> None:
        result = _make_runner().invoke(
            cli,
            [
                "query", str(schema_file), str(data_file), "collector",
                "-w", "name=Emma",
                "--populate", "stamps_m2m",
                "--format", "yaml",
            ],
        )
        assert result.exit_code == 0, result.output
        assert "stamps_m2m" in result.output
        assert "1947" in result.output
        assert "stamps_one_way" not in result.output

    def test_limit_and_offset(self, schema_file: Path, data_file: Path) -> None:
        result = _make_runner().invoke(
            cli,
            [
                "query", str(schema_file), str(data_file), "collector",
                "-s", "name", "--limit", "1", "--offset", "1", "--format", "json",
            ],
        )
        assert result.exit_code == 0, result.output
        assert "Emma" in result.output
        assert "Bernard" not in result.output

    def test_table(self, schema_file: Path, data_file: Path) -> None:
        result = _make_runner().invoke(cli, ["query", str(schema_file), str(data_file), "collector"])
        assert result.exit_code == 0, result.output
        assert "3 row(s)" in result.output

    def test_invalid_filter_path(self, schema_file: Path, data_file: Path) -> None:
        result = _make_runner().invoke(
            cli, ["query", str(schema_file), str(data_file), "collector", "-w", "stamps.colour=red"]
        )
        assert result.exit_code == 1
        assert "Query error" in result.output

    def test_malformed_where(self, schema_file: Path, data_file: Path) -> None:
        result = _make_runner().invoke(
            cli, ["query", str(schema_file), str(data_file), "collector", "-w", "stamps.name"]
        )
        assert result.exit_code == 2
        assert "PATH=VALUE" in result.output

    def test_fixture_with_unknown_id(self, schema_file: Path, tmp_path: Path) -> None:
        data = _write(tmp_path, "bad-data.yaml", "collector:\n  - name: Emma\n    stamps: [7]\n")
        result = _make_runner().invoke(cli, ["query", str(schema_file), data, "collector"])
        assert result.exit_code == 1
        assert "Fixture error" in result.output

    def test_fixture_not_a_mapping(self, schema_file: Path, tmp_path: Path) -> None:
        data = _write(tmp_path, "list.yaml", "- name: Emma\n")
        result = _make_runner().invoke(cli, ["query", str(schema_file), data, "collector"])
        assert result.exit_code == 1


class TestCountCommand:
    def test_count(self, schema_file: Path, data_file: Path) -> None:
        result = _make_runner().invoke(
            cli, ["count", str(schema_file), str(data_file), "collector", "-w", "stamps.name=1946"]
        )
        assert result.exit_code == 0, result.output
        assert result.output.strip() == "2"

    def test_count_without_filter(self, schema_file: Path, data_file: Path) -> None:
        result = _make_runner().invoke(cli, ["count", str(schema_file), str(data_file), "stamp"])
        assert result.exit_code == 0, result.output
        assert result.output.strip() == "3"


# ===========================================================================
# --config
# ===========================================================================


class TestConfigOption:
    def test_default_limit_from_config(self, schema_file: Path, data_file: Path, tmp_path: Path) -> None:
        config = _write(tmp_path, "relquery.yaml", "default_limit: 1\n")
        result = _make_runner().invoke(
            cli,
            ["--config", config, "query", str(schema_file), str(data_file), "collector", "--format", "json"],
        )
        assert result.exit_code == 0, result.output
        assert "Bernard" in result.output
        assert "Isabelle" not in result.output

    def test_invalid_config(self, schema_file: Path, tmp_path: Path) -> None:
        config = _write(tmp_path, "relquery.yaml", "page_size: 10\n")
        result = _make_runner().invoke(cli, ["--config", config, "schema", str(schema_file)])
        assert result.exit_code == 1
        assert "Config error" in result.output
