"""HTTP API layer for the salon booking service."""
from salon_booking.api.models import ErrorResponse

__all__ = ["ErrorResponse"]
