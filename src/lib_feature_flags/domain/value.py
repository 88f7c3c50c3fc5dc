"""Domain-level flag value object.

Purpose
-------
Wrap a single untyped flag payload and expose typed coercions. This module
belongs to the domain layer and contains no I/O.

Contents
--------
* :class:`FlagValue` – immutable wrapper with ``as_*`` coercion helpers.
* :data:`NULL_VALUE` – canonical absent value returned for missing keys.
* :func:`_narrow` – fixed-width integer narrowing used by ``as_int`` and
  ``as_long``.

System Role
-----------
Every resolution call in the library returns a :class:`FlagValue`. Callers
decide the type at the call site (``get("retries").as_int(3)``), so providers
never need to know how a flag will be consumed.
"""

from __future__ import annotations

import math
import numbers
import re
from dataclasses import dataclass
from typing import Any, Final, TypeVar

from .errors import TypeConversionError

T = TypeVar("T")

_TRUE_TEXT: Final[frozenset[str]] = frozenset({"true", "1"})
_FALSE_TEXT: Final[frozenset[str]] = frozenset({"false", "0"})
_INT_BITS: Final[int] = 32
_INTEGER_TEXT: Final[re.Pattern[str]] = re.compile(r"[+-]?[0-9]+")
_LONG_BITS: Final[int] = 64


@dataclass(frozen=True, slots=True)
class FlagValue:
    """Immutable wrapper around one flag payload.

    Why
    ----
    A missing key is routine while a malformed value is a configuration error.
    The wrapper encodes that asymmetry: every ``as_*`` helper returns its
    default for the absent value and raises :class:`TypeConversionError` only
    when a present payload cannot be converted.

    What
    ----
    Holds ``raw`` (``None`` marks the absent value). Equality compares payloads,
    so any absent instance equals :data:`NULL_VALUE`.

    Examples
    --------
    >>> FlagValue.of("42").as_int()
    42
    >>> FlagValue.of(None).as_int(7)
    7
    >>> FlagValue.of("yes").as_boolean()
    Traceback (most recent call last):
    ...
    lib_feature_flags.domain.errors.TypeConversionError: Cannot convert 'yes' to boolean
    """

    raw: Any = None

    @classmethod
    def of(cls, value: Any) -> FlagValue:
        """Wrap *value*, returning :data:`NULL_VALUE` for ``None``.

        Existing :class:`FlagValue` instances are returned unchanged.

        Examples
        --------
        >>> FlagValue.of(None) is NULL_VALUE
        True
        >>> FlagValue.of(True)
        FlagValue(raw=True)
        """

        if value is None:
            return NULL_VALUE
        if isinstance(value, FlagValue):
            return value
        return cls(value)

    @staticmethod
    def null() -> FlagValue:
        """Return the shared absent value."""

        return NULL_VALUE

    def is_null(self) -> bool:
        return self.raw is None

    def is_present(self) -> bool:
        return self.raw is not None

    def as_boolean(self, default: bool = False) -> bool:
        """Coerce the payload to ``bool``.

        Accepts booleans, the strings ``"true"``/``"1"``/``"false"``/``"0"``
        (case-insensitive, surrounding whitespace ignored) and the numbers
        ``1`` and ``0``. Everything else raises :class:`TypeConversionError`.

        Examples
        --------
        >>> FlagValue.of(" TRUE ").as_boolean()
        True
        >>> FlagValue.of(0).as_boolean(True)
        False
        """

        raw = self.raw
        if raw is None:
            return default
        if isinstance(raw, bool):
            return raw
        if isinstance(raw, str):
            text = raw.strip().lower()
            if text in _TRUE_TEXT:
                return True
            if text in _FALSE_TEXT:
                return False
        elif isinstance(raw, numbers.Real):
            if raw == 1:
                return True
            if raw == 0:
                return False
        raise self._conversion_error("boolean")

    def as_string(self, default: str | None = None) -> str | None:
        """Return the payload as text or *default* for the absent value.

        Booleans render as ``"true"``/``"false"``, everything else through
        ``str()``.

        Examples
        --------
        >>> FlagValue.of(False).as_string(), FlagValue.of(2.5).as_string()
        ('false', '2.5')
        """

        raw = self.raw
        if raw is None:
            return default
        if isinstance(raw, bool):
            return "true" if raw else "false"
        return str(raw)

    def as_int(self, default: int = 0) -> int:
        """Coerce the payload to a signed 32-bit integer.

        Numbers are narrowed without raising (integers wrap, other reals
        truncate toward zero and saturate). Strings must be plain ASCII
        decimal digits with an optional sign (no whitespace or ``_``) inside
        the 32-bit range.

        Examples
        --------
        >>> FlagValue.of(3.99).as_int()
        3
        >>> FlagValue.of(2**31).as_int()
        -2147483648
        """

        return self._as_fixed_width(default, _INT_BITS, "int")

    def as_long(self, default: int = 0) -> int:
        """Coerce the payload to a signed 64-bit integer (see :meth:`as_int`)."""

        return self._as_fixed_width(default, _LONG_BITS, "long")

    def as_double(self, default: float = 0.0) -> float:
        """Coerce the payload to ``float``.

        Examples
        --------
        >>> FlagValue.of("2.5").as_double()
        2.5
        >>> FlagValue.of(None).as_double(1.5)
        1.5
        """

        raw = self.raw
        if raw is None:
            return default
        if _is_number(raw):
            try:
                return float(raw)
            except OverflowError:
                return math.inf if raw > 0 else -math.inf
        if isinstance(raw, str):
            if "_" in raw or not raw.isascii():
                raise self._conversion_error("double")
            try:
                return float(raw)
            except ValueError as exc:
                raise self._conversion_error("double") from exc
        raise self._conversion_error("double")

    def as_instance(self, cls: type[T]) -> T | None:
        """Return the payload when it already is an instance of *cls*.

        Never converts: a payload of another type yields ``None``, exactly like
        the absent value.

        Examples
        --------
        >>> FlagValue.of([1, 2]).as_instance(list)
        [1, 2]
        >>> FlagValue.of("1").as_instance(int) is None
        True
        """

        if isinstance(self.raw, cls):
            return self.raw
        return None

    def _as_fixed_width(self, default: int, bits: int, label: str) -> int:
        raw = self.raw
        if raw is None:
            return default
        if _is_number(raw):
            return _narrow(raw, bits)
        if isinstance(raw, str):
            if not _INTEGER_TEXT.fullmatch(raw):
                raise self._conversion_error(label)
            parsed = int(raw)
            if not _fits(parsed, bits):
                raise self._conversion_error(label)
            return parsed
        raise self._conversion_error(label)

    def _conversion_error(self, label: str) -> TypeConversionError:
        return TypeConversionError(f"Cannot convert {self.raw!r} to {label}")


NULL_VALUE: Final[FlagValue] = FlagValue(None)
"""Canonical absent value shared by providers and the facade."""


def _is_number(value: Any) -> bool:
    """Return ``True`` for real numbers other than ``bool``."""

    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def _fits(value: int, bits: int) -> bool:
    return -(1 << (bits - 1)) <= value < (1 << (bits - 1))


def _narrow(number: numbers.Real, bits: int) -> int:
    """Narrow *number* into a signed integer of *bits* width.

    Integers wrap using two's complement. Other reals truncate toward zero and
    saturate at the range limits; NaN becomes ``0``.

    Examples
    --------
    >>> _narrow(2**32 + 5, 32)
    5
    >>> _narrow(1e20, 32)
    2147483647
    >>> _narrow(float("nan"), 64)
    0
    """

    lowest = -(1 << (bits - 1))
    highest = (1 << (bits - 1)) - 1
    if isinstance(number, numbers.Integral):
        span = 1 << bits
        return (int(number) - lowest) % span + lowest
    try:
        real = float(number)
    except OverflowError:
        return highest if number > 0 else lowest
    if math.isnan(real):
        return 0
    if real >= highest:
        return highest
    if real <= lowest:
        return lowest
    return int(real)
