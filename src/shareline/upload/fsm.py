"""Upload task lifecycle finite state machine.

Each status change gets a throwaway FSM instance positioned at the task's
current status.  The FSM is purely a validation tool -- it does NOT mutate
tasks or carry callbacks; :class:`~shareline.upload.store.TaskStore` applies
the change once the transition is known to be legal.
"""

from __future__ import annotations

from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from shareline.models import TaskStatus


class TaskLifecycleSM(StateMachine):
    """Five-state lifecycle of an upload task.

    States:
        queued    -- Admitted, waiting for the worker.
        uploading -- Transfer in flight (holds a cancellation handle).
        done      -- Endpoint acknowledged the upload.
        error     -- Endpoint reported a failure; may be requeued.
        canceled  -- Aborted at the user's request.
    """

    queued = State("queued", initial=True, value="queued")
    uploading = State("uploading", value="uploading")
    done = State("done", value="done", final=True)
    error = State("error", value="error")
    canceled = State("canceled", value="canceled", final=True)

    begin_upload = queued.to(uploading)
    complete = uploading.to(done)
    fail = uploading.to(error)
    abort = uploading.to(canceled)
    requeue = error.to(queued)


# Every target status is reached by exactly one event.
EVENT_FOR_TARGET: dict[TaskStatus, str] = {
    TaskStatus.UPLOADING: "begin_upload",
    TaskStatus.DONE: "complete",
    TaskStatus.ERROR: "fail",
    TaskStatus.CANCELED: "abort",
    TaskStatus.QUEUED: "requeue",
}


def create_fsm(current: TaskStatus | str) -> TaskLifecycleSM:
    """Create an FSM instance positioned at *current*."""
    return TaskLifecycleSM(start_value=TaskStatus(current).value)


def is_transition_allowed(current: TaskStatus | str, target: TaskStatus | str) -> bool:
    """Return True if *current* -> *target* is a legal lifecycle step."""
    fsm = create_fsm(current)
    try:
        fsm.send(EVENT_FOR_TARGET[TaskStatus(target)])
    except TransitionNotAllowed:
        return False
    return True
