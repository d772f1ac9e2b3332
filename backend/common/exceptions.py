"""DRF exception handler translating service-layer rejections into responses."""

import logging

from rest_framework.response import Response
from rest_framework.views import exception_handler

from services.booking_lifecycle.exceptions import BookingError

logger = logging.getLogger(__name__)


def dispatch_exception_handler(exc, context):
    if isinstance(exc, BookingError):
        logger.info("Rejected %s: %s (%s)", context.get("view").__class__.__name__, exc.message, exc.code)
        return Response(
            {"success": False, "error": exc.code, "message": exc.message},
            status=exc.http_status,
        )
    return exception_handler(exc, context)
