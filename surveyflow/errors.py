"""
Exception types for the survey flow.

SurveyError is the root; callers that only care about "an intended,
meaningful failure" catch that. Programming errors (TypeError, ValueError
from contract decoding) are not part of this hierarchy.
"""


class SurveyError(Exception):
    # Base class for domain errors.
    pass


class SurveyNotFound(SurveyError):
    # Raised when an operation names a survey id the store does not hold.

    def __init__(self, survey_id: str):
        self.survey_id = survey_id
        super().__init__(f"Survey {survey_id} not found")


class TransportFailure(SurveyError):
    # Raised when the service or the model backend cannot be reached,
    # or answers with a non-success HTTP status.

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class EmptyResult(SurveyError):
    # Raised when a call succeeded but produced zero usable items.
    pass


class MalformedResult(SurveyError):
    # Raised when model output cannot be decoded into the expected shape.

    def __init__(self, message: str, raw_text: str = ""):
        self.raw_text = raw_text
        super().__init__(message)
