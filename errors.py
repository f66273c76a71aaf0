"""
Exception classes shared by the certificate workflow modules.
"""

from typing import Optional


class CertificateWorkflowError(Exception):
    """Base exception for certificate workflow errors."""
    pass


class ConfigurationError(CertificateWorkflowError):
    """Raised when the template identifier or other settings are missing."""
    pass


class RemoteServiceError(CertificateWorkflowError):
    """Raised when a remote service (Slides, Drive, chart service) fails."""
    pass


class FetchError(RemoteServiceError):
    """Raised when the QR image cannot be fetched."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RowAccessError(CertificateWorkflowError):
    """Raised when the row store is missing or its header is malformed."""
    pass


class ExportError(RemoteServiceError):
    """Raised when a rendered copy cannot be exported or stored."""
    pass
