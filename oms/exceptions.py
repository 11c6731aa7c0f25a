"""
Error taxonomy shared by services and routers.

Services raise these; the application turns them into
``{"success": False, "error": ..., "fields": [...]}`` responses.
"""
from typing import List, Optional


class OMSError(Exception):
    """Base class for errors that map onto an HTTP response"""

    status_code = 500

    def __init__(self, message: str, fields: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.fields = list(fields or [])

    def to_dict(self) -> dict:
        body = {"success": False, "error": self.message}
        if self.fields:
            body["fields"] = self.fields
        return body


class ValidationError(OMSError):
    """Missing or malformed input, raised before any network call"""

    status_code = 400

    def __init__(self, message: str = "Validation failed", fields: Optional[List[str]] = None):
        if fields and message == "Validation failed":
            message = f"Missing or invalid fields: {', '.join(fields)}"
        super().__init__(message, fields)


class NotFoundError(OMSError):
    status_code = 404


class UpstreamError(OMSError):
    """A carrier, payments or CRM call failed.

    The upstream message is passed through as-is.
    """

    status_code = 500

    def __init__(self, message: str, service: str = "", upstream_status: Optional[int] = None):
        super().__init__(message)
        self.service = service
        self.upstream_status = upstream_status


class CarrierNotFound(UpstreamError):
    """The carrier has no record of the requested parcel or tracking number"""

    status_code = 404


class PermissionDenied(OMSError):
    """The database refused the statement (privileges or row security)"""

    status_code = 403
