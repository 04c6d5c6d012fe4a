from pathlib import Path

import pytest
import yaml

from photomirror.config import load_config, write_default_config
from photomirror.errors import ConfigError
from photomirror.expiry import DEFAULT_EXPIRY_DAYS


def test_default_config_round_trips(tmp_path: Path) -> None:
    path = write_default_config(tmp_path / "config.yaml")
    cfg = load_config(path)

    assert cfg.expiry_days == DEFAULT_EXPIRY_DAYS
    assert cfg.score_threshold == 850_000_000
    assert cfg.passes.files is True
    assert cfg.source.manifest is None
    assert cfg.database_path == cfg.export_dir / "export.sqlite"


def test_existing_config_is_not_overwritten(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("expiry_days: 3\n")

    write_default_config(path)

    assert load_config(path).expiry_days == 3


def test_values_and_overrides(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "export_dir": str(tmp_path / "mirror"),
                "workers": 8,
                "passes": {"symlinks": False},
                "source": {"manifest": str(tmp_path / "lib")},
            }
        )
    )

    cfg = load_config(path, overrides={"passes": {"files": False}, "expiry_days": 0})

    assert cfg.export_dir == tmp_path / "mirror"
    assert cfg.workers == 8
    assert cfg.passes.symlinks is False
    assert cfg.passes.files is False
    assert cfg.passes.assets is True
    assert cfg.expiry_days == 0
    assert cfg.source.manifest == tmp_path / "lib"


@pytest.mark.parametrize(
    "body",
    [
        "passes: {thumbnails: true}\n",
        "expiry_days: -1\n",
        "workers: 0\n",
        "workers: many\n",
        "passes: {files: maybe}\n",
        "- not\n- a mapping\n",
        "export_dir: [unclosed\n",
    ],
)
def test_invalid_config_is_rejected(tmp_path: Path, body: str) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(body)

    with pytest.raises(ConfigError):
        load_config(path)
