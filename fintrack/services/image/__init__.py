"""Receipt image services package."""

from fintrack.services.image.receipt_service import (
    ImageRejectedError,
    ReceiptImageError,
    ReceiptImageService,
)

__all__ = ["ImageRejectedError", "ReceiptImageError", "ReceiptImageService"]
