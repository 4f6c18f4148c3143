"""
Custom exceptions for the match-play engine.

Every input problem the engine can detect is raised as a subclass of
MatchValidationError so callers can catch one type and show the message.
A voided frame is a normal result and never raises.
"""


class MatchEngineException(Exception):
    """Base class for all match engine errors."""
    pass


class MatchValidationError(MatchEngineException, ValueError):
    """Input was rejected before any computation took place."""
    pass


# ============ Stroke allocation ============

class InvalidPlayers(MatchValidationError):
    """Player list is not exactly one player on side A and one on side B."""
    pass


class InvalidSegments(MatchValidationError):
    """Segments are empty, overlap, leave gaps or lack stroke indexes."""
    pass


class NegativeStrokePool(MatchValidationError):
    """Handicap difference came out negative (scratch side mismatch)."""
    def __init__(self, pool):
        self.pool = pool
        super().__init__(f"Stroke pool must not be negative, got {pool}")


# ============ 30-10-10 frames ============

class InvalidHoleOutcomes(MatchValidationError):
    """Outcome sequence has the wrong length or an unknown value."""
    pass


class InvalidScores(MatchValidationError):
    """Gross scores are missing or out of range for a hole."""
    pass
