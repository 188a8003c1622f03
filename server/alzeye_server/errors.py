"""Error taxonomy shared by the server and the client.

Every failure a user can trigger maps to one ``ScreeningError`` subclass.
The server turns them into ``ErrorResponse`` bodies keyed by ``kind``; the
client maps the ``kind`` back to the same class.
"""


class ScreeningError(Exception):
    kind = "screening_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def user_message(self) -> str:
        return self.message


class InputUnavailable(ScreeningError):
    """No image or no model ready when prediction was requested."""

    kind = "input_unavailable"
    status_code = 400


class ClassifierFailure(ScreeningError):
    """The image classifier failed to load or predict. Shown verbatim."""

    kind = "classifier_failure"
    status_code = 503


class NarrativeGenerationFailure(ScreeningError):
    """The text service errored or returned a malformed narrative."""

    kind = "narrative_generation_failure"
    status_code = 502
    generic_message = "An error occurred during analysis. Please try again."

    @property
    def user_message(self) -> str:
        return self.generic_message


class ExportFailure(ScreeningError):
    kind = "export_failure"
    generic_message = "Failed to export PDF. Please try again."

    @property
    def user_message(self) -> str:
        return self.generic_message


ERRORS_BY_KIND = {
    cls.kind: cls
    for cls in (InputUnavailable, ClassifierFailure, NarrativeGenerationFailure, ExportFailure)
}
