"""Exception taxonomy shared by the sync and matching pipelines."""

from typing import Optional


class FunderPipelineError(Exception):
    """Base class for all pipeline errors."""


class RemoteAPIError(FunderPipelineError):
    """Non-2xx response (other than 404) from the 360Giving API.

    ``status_code`` is ``None`` when the API could not be reached at all.
    """

    def __init__(self, status_code: Optional[int], message: str = "") -> None:
        self.status_code = status_code
        detail = message or "360Giving API error"
        if status_code is not None:
            detail = f"{detail}: {status_code}"
        super().__init__(detail)

    @property
    def unreachable(self) -> bool:
        return self.status_code is None


class NotFound(RemoteAPIError):
    """Organisation (or funder) does not exist."""

    def __init__(self, message: str = "Organisation not found") -> None:
        self.status_code = 404
        Exception.__init__(self, message)


class StoreError(FunderPipelineError):
    """A persistent-store operation failed."""


class ParseError(FunderPipelineError):
    """Scoring-service response was malformed or referenced an unknown funder."""


class NoFundersAvailable(FunderPipelineError):
    """Matching was attempted with an empty funder population."""
