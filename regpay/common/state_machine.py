"""Payment state machine transitions enforced on every status write."""

from regpay.common.errors import IllegalTransition


PENDING = "PENDING"
COMPLETED = "COMPLETED"
FAILED = "FAILED"
CANCELLED = "CANCELLED"
REFUNDED = "REFUNDED"

ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    PENDING: {COMPLETED, FAILED, CANCELLED},
    COMPLETED: {REFUNDED},
    FAILED: set(),
    CANCELLED: set(),
    REFUNDED: set(),
}

# Gateway IPN `status_code` values that drive a transition. `0` (pending) and
# unknown codes are recorded without a status change.
STATUS_CODE_TARGETS: dict[str, str] = {
    "2": COMPLETED,
    "-1": CANCELLED,
    "-2": FAILED,
    "-3": REFUNDED,
}


def can_transition(current: str, new: str) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, set())


def allowed_sources(target: str) -> set[str]:
    """Statuses from which `target` may legally be reached."""

    return {source for source, targets in ALLOWED_TRANSITIONS.items() if target in targets}


def validate_transition(current: str, new: str) -> None:
    """Raise when a transition is not allowed by the state machine."""

    if not can_transition(current, new):
        raise IllegalTransition(f"Invalid transition: {current} -> {new}")
