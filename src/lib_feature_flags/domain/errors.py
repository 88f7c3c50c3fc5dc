"""Domain-level exception hierarchy.

Purpose
-------
Expose the stable error taxonomy shared by providers, adapters, the facade,
and consuming applications. The hierarchy lives in the domain layer so every
outer layer can raise and catch it without import cycles.

Contents
--------
* :class:`FlagError` – umbrella base class for all library failures.
* :class:`TypeConversionError` – a present flag value could not be coerced.
* :class:`ResolutionError` – a backing source failed beyond "not found".
* :class:`InvalidFormat` – parsing problems while reading flag files.
* :class:`NotFound` – an expected flag file is missing.

System Role
-----------
Absence of a flag is never an error; it is represented by the absent
:class:`~lib_feature_flags.domain.value.FlagValue`. Only malformed present
values (:class:`TypeConversionError`) and broken sources
(:class:`ResolutionError`) surface as exceptions.
"""

from __future__ import annotations


class FlagError(Exception):
    """Base type for all exceptions emitted by ``lib_feature_flags``.

    Why
    ----
    Provide a single catch-all type for consumers that do not need fine-grained
    handling.
    """


class TypeConversionError(FlagError, ValueError):
    """Raised when a present flag value cannot be coerced to the requested type.

    Why
    ----
    A missing key is routine, a malformed value is a configuration error. The
    coercion helpers raise this synchronously and never recover internally.

    Notes
    -----
    Also subclasses :class:`ValueError` so generic ``except ValueError`` blocks
    in host applications keep working.
    """


class ResolutionError(FlagError):
    """Signals a lookup failure beyond "not found".

    Why
    ----
    Reserved for flag sources: an unreachable backend or an unreadable file.
    The facade never raises it on its own.
    """


class InvalidFormat(FlagError):
    """Raised when a flag file cannot be parsed into structured data."""


class NotFound(FlagError):
    """Represents a missing-but-optional resource such as a flag file."""
