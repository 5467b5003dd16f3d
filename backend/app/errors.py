"""Errors raised by the group store."""


class GroupStoreError(Exception):
    """Base class for everything the store raises."""


class NotFoundError(GroupStoreError):
    pass


class ConstraintViolationError(GroupStoreError):
    """A uniqueness or foreign key constraint rejected the statement."""


class ConnectivityError(GroupStoreError):
    """The database could not be reached or dropped the connection."""
