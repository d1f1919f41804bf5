# Overview: Domain errors raised by the lottery services.

"""
Lottery domain errors.

Every error here is terminal for the call that raised it: the service rolls
back the transaction and the message names the invariant that was violated,
so an operator can correct the input instead of retrying blindly.

The one deliberate non-error is the regressive physical count, which is
recorded and surfaced as an alert (see reconciliation_service).
"""
from __future__ import annotations


class LotteryError(Exception):
    """Base class for lottery domain failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LotteryError, ValueError):
    """400-level input problem."""


class LocationRequiredError(ValidationError):
    """Raised when a call carries no resolved, active location."""


class ReasonCodeRequiredError(ValidationError):
    """Raised when a positive count variance is submitted without a reason code."""


class ConflictError(LotteryError):
    """409-level business rule conflict."""


class InvalidRangeError(LotteryError):
    """Raised for bad ticket ranges (inverted, wrong size, overlapping)."""


class InvalidStateError(LotteryError):
    """Raised when a lifecycle transition is not allowed from the current status."""


class RegressionError(LotteryError):
    """Raised when the ticket pointer would move backward."""

    def __init__(self, book_id: int, current_ticket: int, requested_ticket: int):
        super().__init__(
            f"Count would move ticket pointer backward from {current_ticket} "
            f"to {requested_ticket} on book {book_id}"
        )
        self.book_id = book_id
        self.current_ticket = current_ticket
        self.requested_ticket = requested_ticket


class RangeExceededError(LotteryError):
    """Raised when the ticket pointer would pass ticket_end + 1."""

    def __init__(self, book_id: int, ticket_end: int, requested_ticket: int):
        super().__init__(
            f"Ticket pointer {requested_ticket} is beyond the end of book {book_id} "
            f"(last ticket {ticket_end}, fully sold pointer {ticket_end + 1})"
        )
        self.book_id = book_id
        self.ticket_end = ticket_end
        self.requested_ticket = requested_ticket


class BookNotFoundError(LotteryError):
    """Raised when a book does not exist at the given location."""


class DuplicateSettlementError(ConflictError):
    """Raised when a book already has a settlement record."""


class AlreadySettledError(DuplicateSettlementError):
    """Raised by the book inventory when asked to settle a settled book."""


class DuplicateGameNumberError(ConflictError):
    """Raised when a game number is already in the catalog."""


class GameNotFoundError(LotteryError):
    """Raised when a game id or number is unknown."""


class GameInUseError(InvalidStateError):
    """Raised when pricing terms change on a game that live books still reference."""


class CountNotFoundError(LotteryError):
    """Raised when a daily count record does not exist."""


class SettlementNotFoundError(LotteryError):
    """Raised when a settlement record does not exist."""
