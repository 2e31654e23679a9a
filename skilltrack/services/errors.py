"""Error taxonomy shared by the services and mapped to HTTP codes in server.py."""


class SkillTrackError(Exception):
    """Base class for failures local to a single request."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MissingPrerequisiteError(SkillTrackError):
    """Inputs needed for a computation are absent (e.g. no profile or no skills)."""

    status_code = 409


class AIResponseError(SkillTrackError):
    """The AI collaborator failed or returned something we cannot use."""

    status_code = 502


class NotFoundError(SkillTrackError):
    status_code = 404


class ConflictError(SkillTrackError):
    status_code = 409
