"""Environment variable flag source.

Purpose
-------
Expose process environment variables as flags so deployments can toggle
behaviour without shipping files.

Key behaviours
--------------
* Enforces a prefix (``default_env_prefix``) so only relevant variables are
  captured.
* Maps ``__`` to the key separator and lower-cases the result
  (``APP_AUTH__LOGIN__ENABLED`` → ``auth.login.enabled``).
* Performs light type coercion for common scalar types (bools, ints, floats,
  ``null``/``none``); a variable coercing to ``null`` yields no flag.
* ``refresh`` re-reads the environment and drops flags whose variables
  disappeared.
"""

from __future__ import annotations

import os
from typing import Mapping

from ...application.generic import SEPARATOR, GenericFlagProvider
from ...observability import log_debug, make_event


def default_env_prefix(slug: str) -> str:
    """Return the canonical environment prefix for *slug*.

    Examples
    --------
    >>> default_env_prefix('lib-feature-flags')
    'LIB_FEATURE_FLAGS'
    """

    return slug.replace("-", "_").upper()


class EnvFlagProvider(GenericFlagProvider):
    """Flags read from environment variables that share a prefix.

    Parameters
    ----------
    prefix:
        Prefix filter (upper-case). ``_`` is appended if missing. An empty
        prefix captures every variable.
    environ:
        Mapping to read from. Defaults to :data:`os.environ`.

    Examples
    --------
    >>> env = {'DEMO_SERVICE__ENABLED': 'true', 'DEMO_SERVICE__RETRIES': '3', 'OTHER': 'x'}
    >>> provider = EnvFlagProvider('DEMO', environ=env)
    >>> provider.resolve('service.retries').as_int()
    3
    >>> sorted(provider.resolve_children('service'))
    ['enabled', 'retries']
    """

    def __init__(self, prefix: str, *, environ: Mapping[str, str] | None = None) -> None:
        super().__init__()
        self._prefix = f"{prefix}_" if prefix and not prefix.endswith("_") else prefix
        self._environ = environ if environ is not None else os.environ

    @property
    def prefix(self) -> str:
        return self._prefix

    def initialize(self) -> None:
        self.load_flags()

    def load_flags(self) -> None:
        collected = self._collect()
        stale = {key: None for key in self._flags if key not in collected}
        self.bulk_update_flags({**stale, **collected})
        log_debug("env_flags_loaded", **make_event(type(self).__name__, None, {"prefix": self._prefix, "keys": sorted(collected)}))

    def _collect(self) -> dict[str, object]:
        collected: dict[str, object] = {}
        for name, raw in self._environ.items():
            if self._prefix and not name.startswith(self._prefix):
                continue
            stripped = name[len(self._prefix) :]
            if not stripped:
                continue
            value = _coerce(raw)
            if value is not None:
                collected[env_key(stripped)] = value
        return collected


def env_key(name: str) -> str:
    """Translate a prefix-stripped variable name into a dotted flag key.

    Examples
    --------
    >>> env_key('AUTH__LOGIN__ENABLED')
    'auth.login.enabled'
    """

    return SEPARATOR.join(part.lower() for part in name.split("__"))


def _coerce(value: str) -> object:
    """Coerce textual environment values to Python primitives where possible.

    Returns
    -------
    object
        Parsed primitive or original string when coercion is not possible.

    Examples
    --------
    >>> _coerce('true'), _coerce('10'), _coerce('3.5'), _coerce('hello'), _coerce('null')
    (True, 10, 3.5, 'hello', None)
    """

    lowered = value.lower()
    if lowered in {"true", "false"}:
        return lowered == "true"
    if lowered in {"null", "none"}:
        return None
    try:
        if value.isdigit() or (value.startswith("-") and value[1:].isdigit()):
            return int(value)
        return float(value)
    except ValueError:
        return value
