"""Exception hierarchy for the ingestion pipeline."""

# ── Base ──────────────────────────────────────────────────────────────────────


class PipelineError(Exception):
    """Base exception for pipeline errors."""


# ── Upstream ──────────────────────────────────────────────────────────────────


class TransientUpstreamError(PipelineError):
    """An upstream call failed in a way that may succeed on retry."""


class UpstreamUnavailable(PipelineError):
    """An upstream service kept failing after all retry attempts."""


# ── Records ───────────────────────────────────────────────────────────────────


class MalformedRecord(PipelineError):
    """A single upstream item could not be normalized."""


class ConversionError(PipelineError, ValueError):
    """Base exception for amount and address format errors."""


class InvalidAmount(ConversionError):
    """Amount is not a valid numeric string for the target unit."""


class InvalidAddress(ConversionError):
    """Address is not 0x followed by 40 hex digits."""


# ── Configuration ─────────────────────────────────────────────────────────────


class ConfigurationMissing(PipelineError):
    """An optional upstream is not configured."""


__all__ = [
    "ConfigurationMissing",
    "ConversionError",
    "InvalidAddress",
    "InvalidAmount",
    "MalformedRecord",
    "PipelineError",
    "TransientUpstreamError",
    "UpstreamUnavailable",
]
