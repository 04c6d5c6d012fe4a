from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from photomirror.errors import ConfigError
from photomirror.expiry import DEFAULT_EXPIRY_DAYS
from photomirror.paths import DB_FILE, config_root, default_export_dir
from photomirror.physical.files import DEFAULT_WORKERS
from photomirror.physical.symlinks import DEFAULT_SCORE_THRESHOLD


@dataclass(slots=True)
class PassesConfig:
    assets: bool = True
    collections: bool = True
    files: bool = True
    symlinks: bool = True


@dataclass(slots=True)
class SourceConfig:
    manifest: Path | None = None


@dataclass(slots=True)
class AppConfig:
    export_dir: Path = field(default_factory=default_export_dir)
    db_path: Path | None = None
    expiry_days: int = DEFAULT_EXPIRY_DAYS
    score_threshold: int = DEFAULT_SCORE_THRESHOLD
    workers: int = DEFAULT_WORKERS
    passes: PassesConfig = field(default_factory=PassesConfig)
    source: SourceConfig = field(default_factory=SourceConfig)

    @property
    def database_path(self) -> Path:
        return self.db_path if self.db_path is not None else self.export_dir / DB_FILE


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    out = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = v
    return out


def _section(cls: type, data: Any, name: str) -> Any:
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ConfigError(f"'{name}' must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"unknown keys in '{name}': {', '.join(unknown)}")
    return cls(**data)


def _int(data: dict[str, Any], key: str, default: int, minimum: int) -> int:
    raw = data.get(key, default)
    if isinstance(raw, bool):
        raise ConfigError(f"'{key}' must be an integer")
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'{key}' must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ConfigError(f"'{key}' must be >= {minimum}, got {value}")
    return value


def _path(value: Any) -> Path | None:
    if value is None or value == "":
        return None
    return Path(str(value)).expanduser()


def _to_config(data: dict[str, Any]) -> AppConfig:
    passes = _section(PassesConfig, data.get("passes"), "passes")
    for f in fields(PassesConfig):
        if not isinstance(getattr(passes, f.name), bool):
            raise ConfigError(f"'passes.{f.name}' must be true or false")
    source = _section(SourceConfig, data.get("source"), "source")
    source.manifest = _path(source.manifest)
    return AppConfig(
        export_dir=_path(data.get("export_dir")) or default_export_dir(),
        db_path=_path(data.get("db_path")),
        expiry_days=_int(data, "expiry_days", DEFAULT_EXPIRY_DAYS, 0),
        score_threshold=_int(data, "score_threshold", DEFAULT_SCORE_THRESHOLD, 0),
        workers=_int(data, "workers", DEFAULT_WORKERS, 1),
        passes=passes,
        source=source,
    )


def default_config_path() -> Path:
    return config_root() / "config.yaml"


def load_config(config_path: Path | None = None, overrides: dict[str, Any] | None = None) -> AppConfig:
    path = config_path or default_config_path()
    base: dict[str, Any] = {}
    if path.exists():
        try:
            loaded = yaml.safe_load(path.read_text())
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"cannot read config {path}: {exc}") from exc
        if isinstance(loaded, dict):
            base = loaded
        elif loaded is not None:
            raise ConfigError(f"config {path} must be a mapping")
    if overrides:
        base = _merge(base, overrides)
    return _to_config(base)


def write_default_config(path: Path | None = None) -> Path:
    target = path or default_config_path()
    target.parent.mkdir(parents=True, exist_ok=True)
    if target.exists():
        return target
    target.write_text(
        yaml.safe_dump(
            {
                "export_dir": str(default_export_dir()),
                "db_path": None,
                "expiry_days": DEFAULT_EXPIRY_DAYS,
                "score_threshold": DEFAULT_SCORE_THRESHOLD,
                "workers": DEFAULT_WORKERS,
                "passes": {"assets": True, "collections": True, "files": True, "symlinks": True},
                "source": {"manifest": None},
            },
            sort_keys=False,
        )
    )
    return target
