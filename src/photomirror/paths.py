from __future__ import annotations

from pathlib import Path
import os
import re
import unicodedata
from datetime import datetime

from photomirror.util.time import month_str, year_str

APP_NAME = "photomirror"

FILES_DIR = "files"
ALBUMS_DIR = "albums"
LOCATIONS_DIR = "locations"
TOP_SHOTS_DIR = "top-shots"
DB_FILE = "export.sqlite"
LOCK_FILE = ".photomirror.lock"

_WHITESPACE = re.compile(r"\s+")
_NON_WORD = re.compile(r"[^\w\d]+")


def config_root() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        base = Path(xdg)
    else:
        base = Path.home() / ".config"
    root = base / APP_NAME
    root.mkdir(parents=True, exist_ok=True)
    return root


def default_export_dir() -> Path:
    return Path.home() / "Pictures" / APP_NAME


def normalise_for_path(value: str) -> str:
    folded = unicodedata.normalize("NFKD", value)
    folded = "".join(ch for ch in folded if not unicodedata.combining(ch))
    folded = _WHITESPACE.sub("_", folded)
    folded = _NON_WORD.sub("", folded)
    return folded.lower()


def path_for_date_and_location(date: datetime | None, country: str | None = None, city: str | None = None) -> str:
    year = year_str(date)
    month = month_str(date)
    country_part = f"-{normalise_for_path(country)}" if country else ""
    city_part = f"-{normalise_for_path(city)}" if city else ""
    return f"{year}/{year}-{month}{country_part}{city_part}"
