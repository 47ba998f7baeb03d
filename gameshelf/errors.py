"""
Exception hierarchy shared by every GameShelf component.

Only NotFoundError, PreconditionFailedError and MalformedInputError are meant
to reach a UI caller. ExternalServiceUnavailableError is raised by the HTTP
clients and absorbed by the enrichment layers that call them.
"""
from typing import Optional


class GameShelfError(Exception):
    """Base class for all GameShelf errors"""


class NotFoundError(GameShelfError):
    """A game (or other entity) could not be located by any lookup avenue"""


class PreconditionFailedError(GameShelfError):
    """
    A linking precondition was not met.

    The message is user-actionable, e.g. asking the user to make their
    Steam profile public.
    """


class ExternalServiceUnavailableError(GameShelfError):
    """A third-party service did not answer, timed out or returned an error status"""

    def __init__(self, service: str, message: str = "", status: Optional[int] = None):
        self.service = service
        self.status = status
        detail = message or "service unavailable"
        super().__init__(f"{service}: {detail}")


class MalformedInputError(GameShelfError):
    """User-supplied data (e.g. a manual library export) could not be parsed"""
