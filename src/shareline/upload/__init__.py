"""Single-worker upload queue.

Public API
----------
.. autoclass:: UploadQueueManager
.. autoclass:: TaskStore
.. autoclass:: AdmissionController
.. autoclass:: TransferExecutor
.. autoclass:: UploadScheduler
.. autoclass:: RecoveryController
.. autoclass:: HttpTransferEndpoint
.. autoclass:: QueueProgressTracker
"""

from shareline.upload.admission import AdmissionController
from shareline.upload.cancellation import CancellationHandle
from shareline.upload.endpoint import ProgressCallback, TransferEndpoint
from shareline.upload.exceptions import (
    InvalidTransitionError,
    TaskNotFoundError,
    TransferError,
    UploadQueueError,
)
from shareline.upload.executor import TransferExecutor
from shareline.upload.http_endpoint import HttpTransferEndpoint
from shareline.upload.orchestrator import UploadQueueManager
from shareline.upload.progress import QueueProgressTracker
from shareline.upload.recovery import RecoveryController
from shareline.upload.scheduler import UploadScheduler
from shareline.upload.store import ChangeKind, TaskStore

__all__ = [
    "AdmissionController",
    "CancellationHandle",
    "ChangeKind",
    "HttpTransferEndpoint",
    "InvalidTransitionError",
    "ProgressCallback",
    "QueueProgressTracker",
    "RecoveryController",
    "TaskNotFoundError",
    "TaskStore",
    "TransferEndpoint",
    "TransferError",
    "TransferExecutor",
    "UploadQueueError",
    "UploadQueueManager",
    "UploadScheduler",
]
