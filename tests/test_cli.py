import json
from pathlib import Path

import yaml
from typer.testing import CliRunner

from photomirror.cli import app

runner = CliRunner()


def _config(tmp_path: Path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"export_dir": str(tmp_path / "export"), "workers": 1}))
    return path


def _library(tmp_path: Path) -> Path:
    root = tmp_path / "library"
    root.mkdir()
    (root / "IMG_0001.JPG").write_bytes(b"jpeg")
    manifest = {
        "albums": [{"id": "al1", "name": "Pets", "assets": ["a1"]}],
        "assets": [
            {
                "id": "a1",
                "created_at": "2020-01-02T03:04:05+00:00",
                "score": 0.95,
                "resources": [{"type": "photo", "file": "IMG_0001.JPG"}],
            }
        ],
    }
    (root / "manifest.yaml").write_text(yaml.safe_dump(manifest))
    return root


def test_sync_json_output(tmp_path: Path) -> None:
    cfg = _config(tmp_path)
    lib = _library(tmp_path)

    res = runner.invoke(app, ["-q", "--config", str(cfg), "sync", "--manifest", str(lib), "--json"])

    assert res.exit_code == 0, res.output
    payload = json.loads(res.stdout)
    assert payload["asset_export"]["asset"]["inserted"] == 1
    assert payload["collection_export"]["album"]["inserted"] == 1
    assert payload["file_export"]["copied"] == 1
    # one album link and one top-shot
    assert payload["symlink_export"]["created"] == 2
    copied = tmp_path / "export" / "files" / "2020" / "2020-01" / "20200102030405-4-img_0001.jpg"
    assert copied.read_bytes() == b"jpeg"


def test_history_and_status_after_sync(tmp_path: Path) -> None:
    cfg = _config(tmp_path)
    lib = _library(tmp_path)
    runner.invoke(app, ["-q", "--config", str(cfg), "sync", "--manifest", str(lib), "--json"])

    last = runner.invoke(app, ["-q", "--config", str(cfg), "last-run", "--json"])
    assert last.exit_code == 0, last.output
    assert json.loads(last.stdout)["asset_count"] == 1

    hist = runner.invoke(app, ["-q", "--config", str(cfg), "history", "-n", "5", "--json"])
    assert hist.exit_code == 0, hist.output
    assert len(json.loads(hist.stdout)) == 1

    status = runner.invoke(app, ["-q", "--config", str(cfg), "status", "--json"])
    assert status.exit_code == 0, status.output
    body = json.loads(status.stdout)
    assert body["copied_files"] == 1
    assert body["locked"] is False


def test_sync_without_source_fails(tmp_path: Path) -> None:
    cfg = _config(tmp_path)

    res = runner.invoke(app, ["-q", "--config", str(cfg), "sync"])

    assert res.exit_code == 1
    assert "no source library configured" in res.stdout


def test_bad_config_exits_nonzero(tmp_path: Path) -> None:
    cfg = tmp_path / "config.yaml"
    cfg.write_text("workers: 0\n")

    res = runner.invoke(app, ["--config", str(cfg), "status"])

    assert res.exit_code == 1
    assert "workers" in res.stdout


def test_init_config_writes_file(tmp_path: Path) -> None:
    cfg = _config(tmp_path)
    target = tmp_path / "other" / "config.yaml"

    res = runner.invoke(app, ["--config", str(cfg), "init-config", "--path", str(target)])

    assert res.exit_code == 0, res.output
    assert yaml.safe_load(target.read_text())["expiry_days"] == 30
