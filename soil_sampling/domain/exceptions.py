"""
Domain exceptions.
"""


class InvalidBoundaryError(ValueError):
    """Raised when a field boundary cannot describe a usable polygon."""
    pass


class InvalidPointPositionError(ValueError):
    """Raised when a manual point move is rejected by position validation."""
    pass


class PointNotFoundError(LookupError):
    """Raised when a sampling point id is not part of a campaign."""
    pass


class CampaignStateError(Exception):
    """Raised on an illegal campaign status transition."""
    pass


class BatchAnalysisError(Exception):
    """
    Raised when a point analysis fails and the remaining batch is abandoned.

    Results persisted before the failure are listed in ``completed``.
    """

    def __init__(self, point_label: str, cause: BaseException, completed: list[str]):
        self.point_label = point_label
        self.cause = cause
        self.completed = completed
        super().__init__(f"Analysis failed at point {point_label}: {cause}")
