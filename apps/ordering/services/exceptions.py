"""
Domain-specific exceptions for ordering app.

These exceptions represent business rule violations and should be
caught in views and converted to appropriate HTTP responses.
"""


class OrderingServiceError(Exception):
    """Base exception for all ordering service errors."""
    pass


# === Validation ===

class OrderingValidationError(OrderingServiceError):
    """Raised when input is rejected before any write."""
    pass


class EmptyCartError(OrderingValidationError):
    """Raised when a cart is submitted without any line."""
    pass


class QuantityExceedsDemandError(OrderingValidationError):
    """Raised when an approved quantity is above the aggregate demand."""
    pass


class ReceptionQuantityError(OrderingValidationError):
    """Raised when a received quantity is negative or above what remains."""
    pass


class NothingToReceiveError(OrderingValidationError):
    """Raised when a reception decision targets a group with nothing outstanding."""
    pass


# === Not found ===

class PeriodNotFoundError(OrderingServiceError):
    """Raised when a period does not exist."""
    pass


class CircleNotFoundError(OrderingServiceError):
    """Raised when a circle does not exist."""
    pass


class ArticleNotFoundError(OrderingServiceError):
    """Raised when an article does not exist or is inactive."""
    pass


class RequestNotFoundError(OrderingServiceError):
    """Raised when a circle request does not exist."""
    pass


class LineNotFoundError(OrderingServiceError):
    """Raised when a request line does not exist."""
    pass


# === Permissions ===

class NotCircleMemberError(OrderingServiceError):
    """Raised when a member acts for a circle they do not belong to."""
    pass


class InsufficientPermissionsError(OrderingServiceError):
    """Raised when a member lacks the FinAdmin role or does not own the request."""
    pass


# === State ===

class InvalidStateTransitionError(OrderingServiceError):
    """Raised when a status change is not allowed from the current status."""
    pass


class RequestNotDraftError(InvalidStateTransitionError):
    """Raised when lines of a non-draft request would be modified."""
    pass


class PeriodNotOpenError(InvalidStateTransitionError):
    """Raised when an operation requires an open period."""
    pass


class PeriodNotReceivableError(InvalidStateTransitionError):
    """Raised when reception targets a period that is not ordered or waiting."""
    pass


class DuplicatePeriodError(OrderingServiceError):
    """Raised when a period with the same name already exists."""
    pass


# === Consistency warnings ===

class UnconfirmedQuantitiesWarning(OrderingServiceError):
    """
    Raised when a period is ordered while some articles were never approved.

    Not a hard error: the caller repeats the operation with ``confirm=True``.
    """

    def __init__(self, message, article_ids=()):
        super().__init__(message)
        self.article_ids = list(article_ids)
