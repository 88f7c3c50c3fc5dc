"""Flag document formats.

Turns a TOML, JSON, or YAML file into the flat ``{"a.b.c": value}`` mapping
:class:`~lib_feature_flags.adapters.file.default.FileFlagProvider` stores.
Each format is a :class:`DocumentFormat` row pairing a parser with the
exceptions that parser raises for malformed input; reading, validation, and
logging are shared.

Contents
--------
* :class:`DocumentFormat` – one supported format and its ``load_flags``.
* :data:`TOML` / :data:`JSON` / :data:`YAML` and :data:`FORMATS` (by suffix).
* :func:`format_for` – suffix lookup.
* :func:`flatten_mapping` – nested tables to dotted keys.
"""

from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping

import yaml

from ...application.generic import SEPARATOR
from ...domain.errors import InvalidFormat, NotFound
from ...observability import log_debug, log_error


@dataclass(frozen=True, slots=True)
class DocumentFormat:
    """A structured format that can hold flags.

    Attributes
    ----------
    name:
        Label used in log events and error messages.
    parse:
        Turns the raw file bytes into a Python object.
    errors:
        Exceptions ``parse`` raises for malformed input; they become
        :class:`InvalidFormat`.

    Examples
    --------
    >>> from tempfile import TemporaryDirectory
    >>> tmp = TemporaryDirectory()
    >>> target = Path(tmp.name) / "flags.json"
    >>> _ = target.write_text('{"auth": {"login": true}, "beta": "on"}', encoding="utf-8")
    >>> JSON.load_flags(target)
    {'auth.login': True, 'beta': 'on'}
    >>> tmp.cleanup()
    """

    name: str
    parse: Callable[[bytes], Any]
    errors: tuple[type[Exception], ...]

    def load_flags(self, path: str | Path) -> dict[str, object]:
        """Return the flattened flags in *path*.

        Raises
        ------
        NotFound
            *path* is not a file.
        InvalidFormat
            The content does not parse or its top level is not a table.
        """

        location = str(path)
        try:
            document = self.parse(_read(location))
        except self.errors as exc:
            log_error("flag_file_invalid", path=location, format=self.name, error=str(exc))
            raise InvalidFormat(f"Invalid {self.name.upper()} in {location}: {exc}") from exc
        if document is None:
            document = {}
        if not isinstance(document, Mapping):
            raise InvalidFormat(f"File {location} did not produce a mapping")
        flags = flatten_mapping(document)
        log_debug("flag_file_loaded", path=location, format=self.name, keys=len(flags))
        return flags


def _read(path: str) -> bytes:
    file_path = Path(path)
    if not file_path.is_file():
        raise NotFound(f"Flag file not found: {path}")
    payload = file_path.read_bytes()
    log_debug("flag_file_read", path=path, size=len(payload))
    return payload


def _parse_toml(payload: bytes) -> Any:
    return tomllib.loads(payload.decode("utf-8"))


TOML = DocumentFormat("toml", _parse_toml, (tomllib.TOMLDecodeError, UnicodeDecodeError))
JSON = DocumentFormat("json", json.loads, (json.JSONDecodeError, UnicodeDecodeError))
YAML = DocumentFormat("yaml", yaml.safe_load, (yaml.YAMLError,))

FORMATS: Mapping[str, DocumentFormat] = {".toml": TOML, ".json": JSON, ".yaml": YAML, ".yml": YAML}
"""Supported formats keyed by lower-case file suffix."""


def format_for(path: str | Path) -> DocumentFormat | None:
    """Return the format registered for the suffix of *path*.

    Examples
    --------
    >>> format_for("flags.YML").name
    'yaml'
    >>> format_for("flags.ini") is None
    True
    """

    return FORMATS.get(Path(path).suffix.lower())


def flatten_mapping(data: Mapping[str, object], *, _segments: tuple[str, ...] = ()) -> dict[str, object]:
    """Flatten nested mappings into dotted keys.

    Empty tables contribute nothing; lists and other values are kept as-is.

    Examples
    --------
    >>> flatten_mapping({"auth": {"login": {"enabled": True}, "retries": 3}, "beta": "on"})
    {'auth.login.enabled': True, 'auth.retries': 3, 'beta': 'on'}
    """

    flat: dict[str, object] = {}
    for key, value in data.items():
        segments = (*_segments, str(key))
        if isinstance(value, Mapping):
            flat.update(flatten_mapping(value, _segments=segments))
        else:
            flat[SEPARATOR.join(segments)] = value
    return flat
