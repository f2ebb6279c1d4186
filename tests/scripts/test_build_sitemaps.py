"""Tests for scripts/build_sitemaps.py (the command-line entry point)."""

import importlib.util
import json
import xml.etree.ElementTree as ET
from pathlib import Path

import pytest
import yaml

from sitemap_engines.rendering import SITEMAP_NS

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "build_sitemaps.py"


def _load_script():
    spec = importlib.util.spec_from_file_location("build_sitemaps", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


build_sitemaps = _load_script()


@pytest.fixture
def config_file(tmp_path):
    def _write(**options) -> Path:
        values = {
            "columnMapping": {"link": "url"},
            "urlPattern": "https://shop.example.com/{link}",
            "retryDelayMs": 0,
        }
        values.update(options)
        path = tmp_path / "sitemap.yaml"
        path.write_text(yaml.safe_dump(values))
        return path

    return _write


@pytest.fixture
def products(tmp_path):
    one = tmp_path / "one.csv"
    one.write_text("url\na\nb\n")
    two = tmp_path / "two.csv"
    two.write_text("url\nb\nc\n")
    return one, two


def _locs(path: Path) -> list[str]:
    root = ET.parse(path).getroot()
    return [el.text for el in root.findall("sm:url/sm:loc", {"sm": SITEMAP_NS})]


class TestBuild:
    def test_one_sitemap_set_per_file(self, tmp_path, config_file, products, capsys):
        output = tmp_path / "out"
        code = build_sitemaps.main(
            ["--config", str(config_file()), "--file", str(products[0]),
             "--file", str(products[1]), "--output", str(output), "--timeout", "10"]
        )

        assert code == 0
        report = json.loads(capsys.readouterr().out)
        assert report["batch"]["status"] == "completed"
        assert len(report["sitemaps"]) == 2
        files = sorted(output.glob("*/sitemaps/*/sitemap.xml"))
        assert len(files) == 2
        assert sorted(loc for f in files for loc in _locs(f)) == [
            "https://shop.example.com/a",
            "https://shop.example.com/b",
            "https://shop.example.com/b",
            "https://shop.example.com/c",
        ]
        assert len(list(output.glob("*/batch.json"))) == 1

    def test_merge(self, tmp_path, config_file, products, capsys):
        output = tmp_path / "out"
        code = build_sitemaps.main(
            ["--config", str(config_file()), "--file", str(products[0]),
             "--file", str(products[1]), "--output", str(output), "--merge", "--timeout", "10"]
        )

        assert code == 0
        report = json.loads(capsys.readouterr().out)
        assert len(report["sitemaps"]) == 1
        (merged,) = output.glob("*/sitemaps/merged/sitemap.xml")
        assert len(_locs(merged)) == 3

    def test_hierarchical(self, tmp_path, config_file, products, capsys):
        output = tmp_path / "out"
        code = build_sitemaps.main(
            ["--config", str(config_file(baseUrl="https://shop.example.com/sitemaps")),
             "--file", str(products[0]), "--file", str(products[1]),
             "--output", str(output), "--hierarchical", "--timeout", "10"]
        )

        assert code == 0
        (result,) = json.loads(capsys.readouterr().out)["sitemaps"]
        assert [f["name"] for f in result["files"]] == ["one.xml", "two.xml"]
        assert result["index_name"] == "sitemap_index.xml"
        (folder,) = output.glob("*/sitemaps/hierarchy")
        assert _locs(folder / "one.xml") == [
            "https://shop.example.com/a",
            "https://shop.example.com/b",
        ]
        assert (folder / "sitemap_index.xml").is_file()

    def test_failed_file_sets_exit_code(self, tmp_path, config_file, capsys):
        bad = tmp_path / "bad.csv"
        bad.write_text("href\na\n")
        code = build_sitemaps.main(
            ["--config", str(config_file()), "--file", str(bad),
             "--output", str(tmp_path / "out"), "--timeout", "10"]
        )

        assert code == 1
        report = json.loads(capsys.readouterr().out)
        assert report["batch"]["status"] == "failed"
        assert report["sitemaps"] == []


class TestPreview:
    def test_preview_writes_nothing(self, tmp_path, config_file, products, capsys, monkeypatch):
        monkeypatch.chdir(tmp_path)
        code = build_sitemaps.main(
            ["--config", str(config_file()), "--file", str(products[0]), "--preview"]
        )

        assert code == 0
        out = capsys.readouterr().out
        assert "one.csv: 2 rows" in out
        assert "https://shop.example.com/a" in out
        assert not (tmp_path / "sitemap_output").exists()

    def test_preview_reports_placeholder_errors(self, tmp_path, config_file, capsys):
        bad = tmp_path / "bad.csv"
        bad.write_text("href\na\n")
        code = build_sitemaps.main(["--config", str(config_file()), "--file", str(bad), "--preview"])

        assert code == 1
        assert "Cannot resolve placeholders: {link}" in capsys.readouterr().out


class TestArguments:
    def test_missing_file(self, tmp_path, config_file, capsys):
        code = build_sitemaps.main(
            ["--config", str(config_file()), "--file", str(tmp_path / "nope.csv")]
        )
        assert code == 1
        assert "File not found" in capsys.readouterr().err

    def test_invalid_configuration(self, config_file, products, capsys):
        code = build_sitemaps.main(
            ["--config", str(config_file(bogus="x")), "--file", str(products[0]),
             "--preview"]
        )
        assert code == 1
        assert "unknown configuration option: bogus" in capsys.readouterr().err

    def test_file_is_required(self, config_file):
        with pytest.raises(SystemExit):
            build_sitemaps.main(["--config", str(config_file())])

    def test_merge_and_hierarchical_are_exclusive(self, config_file, products):
        with pytest.raises(SystemExit):
            build_sitemaps.main(
                ["--config", str(config_file()), "--file", str(products[0]),
                 "--merge", "--hierarchical"]
            )
