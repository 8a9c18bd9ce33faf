"""Exceptions raised by the role persistence package."""


class RolePersistError(Exception):
    """Base class for role persistence errors."""


class InvalidRecordError(RolePersistError):
    """A record violates the creation-time invariants (e.g. role count)."""


class ExpiryParseError(RolePersistError):
    """An expiry expression could not be turned into a usable date.

    ``template`` names the user-facing message the command layer should show.
    """

    def __init__(self, message: str, template: str = "unknown_format") -> None:
        super().__init__(message)
        self.template = template
