"""
Error kinds raised by clubadmin.

Logic errors (not found, invalid input) are reported per item in bulk
operations. Store failures point at the database, not at the data.
"""


class ClubAdminError(Exception):
    """Base class for all clubadmin errors."""
    pass


class NotFoundError(ClubAdminError):
    """Referenced member or record does not exist."""
    pass


class InvalidInputError(ClubAdminError, ValueError):
    """A value supplied by the caller cannot be processed."""
    pass


class StoreFailure(ClubAdminError):
    """A read or write against the database failed."""
    pass
