"""Exception hierarchy for the retrieval, tutoring and targeting core.

Provider errors are raised by the embedding and language model adapters and
are caught at the retriever and generator boundaries. Not-found errors
propagate to the HTTP layer, which maps them to 404 responses.
"""


class CampusAIError(Exception):
    """Base class for all service errors."""


# -------------------------------------------------------------------------
# Provider errors
# -------------------------------------------------------------------------


class ProviderUnavailable(CampusAIError):
    """The provider has no credential configured."""

    def __init__(self, provider: str, message: str | None = None) -> None:
        self.provider = provider
        super().__init__(message or f"{provider} provider is not configured")


class ProviderError(CampusAIError):
    """Transport or API failure while calling an external provider."""

    def __init__(self, provider: str, message: str, status_code: int | None = None) -> None:
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"{provider}: {message}")


class ProviderTimeout(ProviderError):
    """The provider call did not complete within its time budget."""

    def __init__(self, provider: str, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(provider, f"timed out after {timeout_seconds:.1f}s")


class TruncatedEmptyResponse(ProviderError):
    """Generation hit its token ceiling before producing visible text.

    Increase the completion budget or shorten the query.
    """

    def __init__(self, provider: str, max_tokens: int) -> None:
        self.max_tokens = max_tokens
        super().__init__(
            provider,
            f"response truncated at {max_tokens} tokens with no visible output",
        )


# -------------------------------------------------------------------------
# Input errors
# -------------------------------------------------------------------------


class InvalidQuery(CampusAIError):
    """Empty or malformed input, rejected before any provider call."""


class MissingSyllabus(InvalidQuery):
    """The course has no syllabus to import knowledge from."""


# -------------------------------------------------------------------------
# Not found
# -------------------------------------------------------------------------


class NotFoundError(CampusAIError):
    """A referenced record does not exist."""

    resource = "record"

    def __init__(self, identifier: object) -> None:
        self.identifier = identifier
        super().__init__(f"{self.resource} not found: {identifier}")


class StudentNotFound(NotFoundError):
    resource = "student"


class CourseNotFound(NotFoundError):
    resource = "course"


class EnrollmentNotFound(NotFoundError):
    resource = "enrollment"


class CampaignNotFound(NotFoundError):
    resource = "campaign"
