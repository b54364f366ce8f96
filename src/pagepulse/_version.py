"""Version lookup for pagepulse."""

import tomllib
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _metadata_version
from pathlib import Path

_SOURCE_PYPROJECT = Path(__file__).resolve().parents[2] / "pyproject.toml"


def get_version(pyproject: Path = _SOURCE_PYPROJECT) -> str:
    """
    Version of the running code.

    A source checkout reads ``[project].version`` from its pyproject.toml so
    an editable install never reports stale metadata; otherwise the installed
    distribution metadata is used.
    """
    try:
        with pyproject.open("rb") as f:
            declared = tomllib.load(f).get("project", {}).get("version")
    except (OSError, tomllib.TOMLDecodeError):
        declared = None
    if isinstance(declared, str) and declared:
        return declared
    try:
        return _metadata_version("pagepulse")
    except PackageNotFoundError:
        return "0.0.0"
