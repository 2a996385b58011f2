"""
Error taxonomy for the governance core.

Services raise these synchronously; nothing is suppressed or
defaulted. The API layer maps each type to an HTTP status.
"""


class GovernanceError(Exception):
    """Base class for every error raised by the governance core."""


class NotFoundError(GovernanceError):
    """A proposal, variance record, or milestone does not exist."""

    def __init__(self, entity: str, identifier):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} {identifier} not found")


class InvalidStateError(GovernanceError):
    """
    A transition was attempted from a state that does not permit it.

    Both ends of the attempted transition are kept so callers can
    report exactly what was refused.
    """

    def __init__(self, from_status, to_status, detail: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        message = (
            f"Cannot transition from {_value(from_status)} "
            f"to {_value(to_status)}"
        )
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class DuplicateError(GovernanceError):
    """A second variance record was requested for the same proposal."""


class ValidationError(GovernanceError, ValueError):
    """Malformed input, e.g. a non-positive budget or an empty veto reason."""


class PersistenceError(GovernanceError):
    """The underlying store failed. Nothing is retried here."""


class CreationError(PersistenceError):
    """A proposal could not be persisted."""


class CaseNumberConflictError(CreationError):
    """Another transaction took the allocated case number first."""


def _value(status) -> str:
    return getattr(status, "value", str(status))
