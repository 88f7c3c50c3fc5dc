"""Structured file flag source.

Purpose
-------
Serve flags from a TOML, JSON, or YAML document. Nested tables become dotted
keys (``[auth.login] enabled = true`` → ``auth.login.enabled``).

Key behaviours
--------------
* The format is chosen by file suffix unless one is passed explicitly.
* ``refresh`` re-reads the file and replaces the flag set; keys removed from
  the file disappear.
* A missing file yields no flags. Malformed content raises
  :class:`~lib_feature_flags.domain.errors.ResolutionError` and leaves the
  previously loaded flags untouched.
"""

from __future__ import annotations

from pathlib import Path

from ...application.generic import GenericFlagProvider
from ...domain.errors import InvalidFormat, NotFound, ResolutionError
from ...observability import log_debug, make_event
from ..file_loaders.structured import DocumentFormat, format_for


class FileFlagProvider(GenericFlagProvider):
    """Flags loaded from one structured document.

    Parameters
    ----------
    path:
        Flag document location.
    document_format:
        Explicit format; defaults to the one registered for the suffix.

    Raises
    ------
    ValueError
        When no format is registered for the file suffix.

    Examples
    --------
    >>> from tempfile import TemporaryDirectory
    >>> tmp = TemporaryDirectory()
    >>> target = Path(tmp.name) / "flags.json"
    >>> _ = target.write_text('{"auth": {"login": {"enabled": true}}}', encoding="utf-8")
    >>> FileFlagProvider(target).resolve("auth.login.enabled").as_boolean()
    True
    >>> tmp.cleanup()
    """

    def __init__(self, path: str | Path, *, document_format: DocumentFormat | None = None) -> None:
        super().__init__()
        self._path = Path(path)
        if document_format is None:
            document_format = format_for(self._path)
            if document_format is None:
                raise ValueError(f"Unsupported flag file type: {self._path.suffix or self._path.name}")
        self._format = document_format

    @property
    def path(self) -> Path:
        return self._path

    def initialize(self) -> None:
        self.load_flags()

    def load_flags(self) -> None:
        try:
            loaded = self._format.load_flags(self._path)
        except NotFound:
            log_debug("flag_file_missing", **make_event(type(self).__name__, None, {"path": str(self._path)}))
            loaded = {}
        except InvalidFormat as exc:
            raise ResolutionError(f"Failed to load flags from {self._path}: {exc}") from exc
        stale = {key: None for key in self._flags if key not in loaded}
        self.bulk_update_flags({**stale, **loaded})
        log_debug("flags_loaded", **make_event(type(self).__name__, None, {"path": str(self._path), "keys": len(loaded)}))
