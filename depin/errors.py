"""
errors.py - Rejection taxonomy for every core operation.

Each error is a hard, synchronous rejection: the operation is discarded with
no state change and no event. The ``code`` attribute is stable and is what
API clients see in the ``error`` field of a rejected request.
"""


class DePINError(Exception):
    """Base class for all rejections raised by the core."""

    code = "DePINError"
    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class NotFound(DePINError):
    code = "NotFound"
    status_code = 404


class NotOwner(DePINError):
    code = "NotOwner"
    status_code = 403


class Unauthorized(DePINError):
    code = "Unauthorized"
    status_code = 403


class InsufficientStake(DePINError):
    code = "InsufficientStake"


class InsufficientNativeStake(InsufficientStake):
    code = "InsufficientNativeStake"


class InsufficientTokenStake(InsufficientStake):
    code = "InsufficientTokenStake"


class InvalidAmount(DePINError):
    code = "InvalidAmount"


class InactiveNodeType(DePINError):
    code = "InactiveNodeType"


class NodeNotActive(DePINError):
    code = "NodeNotActive"


class AlreadyTerminated(DePINError):
    code = "AlreadyTerminated"


class CapacityReached(DePINError):
    code = "CapacityReached"


class InsufficientBalance(DePINError):
    """Token balance or allowance too low for a transfer."""

    code = "InsufficientBalance"
