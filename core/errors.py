# ================================================================
# File     : errors.py
# Purpose  : Exception types raised across TenantTrail
# Notes    : Caught once at the module boundary (module_loader)
# ================================================================

from typing import Optional


class TenantTrailError(Exception):
    """Base class for every error TenantTrail raises on purpose."""


class AuthenticationError(TenantTrailError):
    """Token acquisition or CLI login failed. Fatal for the run."""


class GraphAPIError(TenantTrailError):
    """A Microsoft Graph request returned a non-success status."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class LogAnalyticsError(TenantTrailError):
    """A Log Analytics query (via az rest) failed."""


class MissingInputFile(TenantTrailError):
    """An --input-file path does not exist."""

    def __init__(self, path: str):
        super().__init__(f"Input file not found: {path}")
        self.path = path


class UnreadableInputFile(TenantTrailError):
    """An --input-file exists but cannot be read as UTF-8 text."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Cannot read input file {path}: {reason}")
        self.path = path
