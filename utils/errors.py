"""
Error taxonomy shared by the gateway client, the document assembler and the API layer
"""


class StoryServerError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str = "Internal Server Error"):
        super().__init__(message)
        self.message = message


class UpstreamRateLimited(StoryServerError):
    """Provider kept answering 429 after the retry ceiling"""
    status_code = 503
    code = "upstream_rate_limited"

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class UpstreamTransportError(StoryServerError):
    """Network failure, timeout, non-2xx status or malformed payload from an upstream host"""
    status_code = 502
    code = "upstream_error"

    def __init__(self, message: str, status: int = None):
        super().__init__(message)
        self.status = status


class InvalidPromptError(StoryServerError):
    status_code = 400
    code = "invalid_prompt"


class InsufficientContentError(StoryServerError):
    status_code = 502
    code = "insufficient_content"

    def __init__(self, message: str, paragraphs: int = 0):
        super().__init__(message)
        self.paragraphs = paragraphs


class ValidationError(StoryServerError):
    status_code = 400
    code = "validation_error"


class UploadError(StoryServerError):
    status_code = 400
    code = "upload_error"
