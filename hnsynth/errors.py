"""Exception hierarchy for HN Synth.

Stream failures are local to the stream that raised them: the aggregator
logs them and stops consuming, sibling streams keep running.
"""

from __future__ import annotations


class HNSynthError(Exception):
    """Base exception for all application-specific errors."""


class BackendUnavailable(HNSynthError):
    """The completion backend could not be reached or refused the request."""


class SchemaValidationFailure(HNSynthError):
    """Backend output could not be coerced to the requested schema."""


class ConfigError(HNSynthError):
    """The generator configuration file is missing or malformed."""
