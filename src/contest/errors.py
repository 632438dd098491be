"""
Exceptions raised by the bracket engine.

Each carries the HTTP status the Flask layer answers with.
"""


class ContestError(Exception):
    """Base exception for all engine errors."""
    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        self.message = message
        if status_code:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(ContestError):
    """Malformed bracket input: contestant, region or seed counts."""
    status_code = 400


class ConflictError(ContestError):
    """
    Operation conflicts with current state.

    Examples:
    - Second regular vote by the same voter on a matchup
    - Vote on a matchup that is not active
    - Vote for a contestant who is not in the matchup
    """
    status_code = 409


class IncompleteRoundError(ContestError):
    """Advancement attempted while a matchup in the round is still open."""
    status_code = 409


class PolicyError(ContestError):
    """Invalid or missing tie-break instruction."""
    status_code = 400


class NotFoundError(ContestError):
    """Unknown tournament, round, matchup or contestant id."""
    status_code = 404
