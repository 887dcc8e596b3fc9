"""
Source validation.

Probes every channel's sources under a concurrency cap and reports which
channels are currently playable.
"""

from tvgrid.validation.source_validator import (
    ProbeUnavailableError,
    SourceValidator,
    ValidationReport,
)

__all__ = [
    "ProbeUnavailableError",
    "SourceValidator",
    "ValidationReport",
]
