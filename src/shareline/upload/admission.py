"""Admission control: turn candidate payloads into queued tasks.

Capacity is checked before size, matching the order a user sees in the UI:
only the first ``remaining capacity`` payloads are considered at all, and
oversized files among those are skipped.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable

from shareline.models import (
    AdmissionRejection,
    AdmissionResult,
    Payload,
    RejectionReason,
    UploadTask,
)
from shareline.upload.store import TaskStore

logger = logging.getLogger(__name__)


class AdmissionController:
    """Validates payloads against the admission policy and enqueues them.

    Args:
        store: Task store that receives admitted tasks.
        max_payload_size: Largest accepted payload, in bytes.
        max_queue_size: Largest number of tasks the store may hold after
            an admission.
    """

    def __init__(self, store: TaskStore, max_payload_size: int, max_queue_size: int) -> None:
        self._store = store
        self.max_payload_size = max_payload_size
        self.max_queue_size = max_queue_size

    @property
    def remaining_capacity(self) -> int:
        return max(0, self.max_queue_size - len(self._store))

    def admit(self, payloads: Iterable[Payload]) -> AdmissionResult:
        """Admit as many *payloads* as the policy allows, in input order.

        Never blocks and performs no I/O; the caller decides whether to
        start the worker afterwards.
        """
        candidates = list(payloads)
        result = AdmissionResult()

        allowed = self.remaining_capacity
        considered, overflow = candidates[:allowed], candidates[allowed:]
        for payload in overflow:
            result.rejections.append(AdmissionRejection(payload, RejectionReason.CAPACITY))
        result.dropped_for_capacity = len(overflow)

        for payload in considered:
            if payload.size > self.max_payload_size:
                result.rejections.append(AdmissionRejection(payload, RejectionReason.SIZE))
                result.dropped_for_size += 1
                continue
            task = UploadTask(id=uuid.uuid4().hex, payload=payload)
            self._store.append(task)
            result.admitted.append(task)

        if result.dropped_for_capacity:
            logger.warning(
                "Queue limit is %d tasks: dropped %d of %d payloads",
                self.max_queue_size,
                result.dropped_for_capacity,
                len(candidates),
            )
        if result.dropped_for_size:
            logger.warning(
                "Dropped %d payloads larger than %d bytes",
                result.dropped_for_size,
                self.max_payload_size,
            )
        logger.info("Admitted %d payloads (queue size %d)", result.admitted_count, len(self._store))
        return result
