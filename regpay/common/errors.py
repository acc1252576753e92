"""Error taxonomy for the payment confirmation pipeline."""


class PipelineError(Exception):
    """Base class for pipeline errors surfaced to HTTP handlers and scripts."""


class InvalidSignature(PipelineError):
    """Inbound notification failed gateway signature verification."""


class AmountMismatch(InvalidSignature):
    """Signed notification disagrees with the locally recorded amount or merchant."""


class UnknownOrder(PipelineError):
    """The gateway referenced an order id with no local payment record."""

    def __init__(self, order_id: str) -> None:
        super().__init__(f"unknown order {order_id}")
        self.order_id = order_id


class IllegalTransition(PipelineError, ValueError):
    """Requested status change is not permitted by the payment state machine."""


class CodeGenerationExhausted(PipelineError):
    """No unused code was found within the attempt budget."""

    def __init__(self, scope: str, attempts: int) -> None:
        super().__init__(f"no unique code found for scope={scope} after {attempts} attempts")
        self.scope = scope
        self.attempts = attempts


class NotificationDispatchFailed(PipelineError):
    """The external notification service refused or failed one send."""


class CheckoutError(PipelineError, ValueError):
    """The cart cannot be turned into a payment (empty, expired, missing)."""
