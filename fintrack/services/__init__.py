"""Services package."""

from fintrack.services.image import (
    ImageRejectedError,
    ReceiptImageError,
    ReceiptImageService,
)
from fintrack.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    CorruptSlotError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsSlotStorage,
    InMemoryAuditStorage,
    InMemorySlotStorage,
    JsonFileSlotStorage,
    QuotaExceededError,
    SlotStorageInterface,
    StorageError,
)

__all__ = [
    # Image services
    "ImageRejectedError",
    "ReceiptImageError",
    "ReceiptImageService",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "CorruptSlotError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsSlotStorage",
    "InMemoryAuditStorage",
    "InMemorySlotStorage",
    "JsonFileSlotStorage",
    "QuotaExceededError",
    "SlotStorageInterface",
    "StorageError",
]
