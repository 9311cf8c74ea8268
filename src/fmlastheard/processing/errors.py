# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Exception types raised by the processing layer.

None of these are fatal: callers at the service, consumer and scheduler
boundaries log them and skip the current unit of work.
"""


class FMLastHeardError(Exception):
    """Base class for all processing errors."""


class DecodeError(FMLastHeardError):
    """Inbound payload is malformed (not JSON, not an object)."""


class ValidationError(FMLastHeardError):
    """A required field is missing, empty or unparseable."""

    def __init__(self, message: str, field: str = ""):
        super().__init__(message)
        self.field = field


class StoreUnavailable(FMLastHeardError):
    """The SQLite store could not be reached or stayed locked past its timeout."""


class AggregationFailure(FMLastHeardError):
    """Reading the window or publishing the snapshot failed."""
