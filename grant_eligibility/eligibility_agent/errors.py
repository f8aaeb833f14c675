### grant_eligibility/eligibility_agent/errors.py
from typing import Any, Dict, Optional

ASSISTANT_ERROR_MSG = (
    "AI assistant returned something unexpected. \n"
    "It does that sometimes :( \n"
    "... \n \n \n"
    "Anyways please try again"
)

# Provider messages seen when a file can't be indexed for retrieval.
UNSUPPORTED_FILE_MESSAGES = (
    "failed to index file",
    "unsupported file",
    "not supported for retrieval",
)


class EligibilityError(Exception):
    """Base class for every caller-facing failure of the eligibility pipeline."""

    code = "internal_error"
    status_code = 500
    message = "Unknown error occurred, please try again later."

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "errorMsg": self.message}


class MissingPdfUrl(EligibilityError):
    code = "missing_pdf_url"
    status_code = 400
    message = "No PDF URL provided."


class RateLimitExceeded(EligibilityError):
    code = "rate_limit_exceeded"
    status_code = 429
    message = "Rate limit exceeded."


class InvalidPdfUrl(EligibilityError):
    code = "invalid_pdf_url"
    status_code = 400
    message = "Invalid PDF URL."


class PdfDownloadFailed(EligibilityError):
    code = "pdf_download_failed"
    status_code = 502
    message = "Could not download the PDF."


class PdfWriteFailed(EligibilityError):
    code = "pdf_write_failed"
    status_code = 500
    message = "Could not store the downloaded PDF."


class FileUploadFailed(EligibilityError):
    code = "file_upload_failed"
    status_code = 502
    message = "Upload to OpenAI failed."


class UnsupportedFileType(EligibilityError):
    code = "unsupported_file_type"
    status_code = 400
    message = "Unsupported file type."


class ProviderError(EligibilityError):
    code = "provider_error"
    status_code = 502
    message = "OpenAI request failed, please try again later."


class OpenAIRateLimitExceeded(EligibilityError):
    code = "openai_rate_limit_exceeded"
    status_code = 429
    message = "OpenAI API rate limit exceeded."


class RunFailed(EligibilityError):
    code = "run_failed"
    status_code = 502
    message = "The AI assistant run failed upstream, please try again."


class RunTimeout(EligibilityError):
    code = "run_timeout"
    status_code = 504
    message = "The AI assistant took too long to respond, please try again."


class AssistantError(EligibilityError):
    code = "assistant_error"
    status_code = 500
    message = ASSISTANT_ERROR_MSG


def provider_error_message(err: Exception) -> str:
    """Pull the human readable message out of an openai APIError."""
    body = getattr(err, "body", None)
    if isinstance(body, dict):
        # Error bodies come either wrapped in {"error": {...}} or bare
        inner = body.get("error", body)
        if isinstance(inner, dict) and inner.get("message"):
            return str(inner["message"])
    return str(getattr(err, "message", None) or err)


def is_unsupported_file_error(err: Exception) -> bool:
    """
    True if the provider rejected the request because the uploaded file
    could not be indexed as a document.

    This is string matching on provider messages, so it is kept here and
    nowhere else.
    """
    msg = provider_error_message(err).lower()
    return any(fragment in msg for fragment in UNSUPPORTED_FILE_MESSAGES)
