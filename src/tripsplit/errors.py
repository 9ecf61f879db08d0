"""Exceptions raised by Tripsplit."""


class TripsplitError(Exception):
    """Base class for all Tripsplit errors."""

    pass


class NotFoundError(TripsplitError):
    """A trip or transaction does not exist (or is not visible to the caller)."""

    pass


class InvalidInputError(TripsplitError):
    """Malformed trip, member or transaction input."""

    pass


class ConflictError(TripsplitError):
    """Mutation conflicts with the trip state (closed trip, duplicate member)."""

    pass


class NotAllowedError(TripsplitError):
    """The caller does not own the trip the object belongs to."""

    pass


class TripNotClosedError(TripsplitError):
    """Settlement was requested before the trip was closed."""

    is_closed = False

    def __init__(
        self,
        message: str = "Trip not closed. Settlement is only available after the trip is ended.",
    ):
        super().__init__(message)


class ReceiptError(TripsplitError):
    """Error extracting data from a receipt image."""

    pass
