"""Errors raised by domain service collaborators."""


class ServiceError(Exception):
    """A domain service call failed."""
    pass


class NotConnectedError(ServiceError):
    """The user has not linked the account the service needs."""

    def __init__(self, message: str = "Google account not connected"):
        super().__init__(message)


class ItemNotFoundError(ServiceError):
    """The referenced item does not exist or does not belong to the user."""
    pass
