"""Shareline client-side upload queue."""

__version__ = "0.1.0"

from shareline.config import QueueConfig
from shareline.models import (
    AdmissionResult,
    Payload,
    TaskStatus,
    TransferOutcome,
    UploadReceipt,
    UploadTask,
)

__all__ = [
    "AdmissionResult",
    "Payload",
    "QueueConfig",
    "TaskStatus",
    "TransferOutcome",
    "UploadReceipt",
    "UploadTask",
    "__version__",
]
