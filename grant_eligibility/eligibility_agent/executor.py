### grant_eligibility/eligibility_agent/executor.py
import asyncio
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any, Dict, Optional

import openai

from grant_eligibility.config import Settings
from grant_eligibility.data.file_utils import (
    DownloadedFile,
    DownloadError,
    FileWriteError,
    InvalidURLError,
    delete_file,
    download_file,
)
from .errors import (
    AssistantError,
    FileUploadFailed,
    InvalidPdfUrl,
    MissingPdfUrl,
    OpenAIRateLimitExceeded,
    PdfDownloadFailed,
    PdfWriteFailed,
    ProviderError,
    RateLimitExceeded,
    RunFailed,
    RunTimeout,
    UnsupportedFileType,
    is_unsupported_file_error,
    provider_error_message,
)
from .prompts import CHECK_ELIGIBILITY_FUNCTION

logger = logging.getLogger(__name__)

# Run statuses that mean "keep polling"
PENDING_RUN_STATUSES = ("queued", "in_progress", "cancelling")


async def run_eligibility_pipeline(
    pdf_link: Optional[str],
    client_id: Optional[str],
    *,
    provider,
    rate_limiter,
    settings: Settings,
) -> Dict[str, Any]:
    """
    Turn a grant PDF link into the raw checkEligibility tool call.

    Steps: rate check, download, upload, ephemeral assistant, thread, run,
    poll, extract. The uploaded file and the assistant are released when the
    provider scope exits, whatever happened inside it. Every failure is
    raised as an EligibilityError subclass.
    """
    if not pdf_link:
        raise MissingPdfUrl()

    # Step 1: Rate check (no client id means no limiting)
    if client_id is not None and not await rate_limiter.admit(client_id):
        raise RateLimitExceeded()

    # Step 2: Download the PDF to scratch
    downloaded = await fetch_pdf(pdf_link, settings)

    # Steps 3-6: Provider round trip
    async with AsyncExitStack() as stack:
        file = await stack.enter_async_context(uploaded_file(provider, downloaded))
        assistant = await stack.enter_async_context(ephemeral_assistant(provider, file.id))

        thread = await provider_call(provider.create_thread(downloaded.filename), check_file_type=True)
        run = await provider_call(provider.create_run(thread.id, assistant.id))
        logger.info(f"Started run {run.id} on thread {thread.id} for {pdf_link}")

        run = await wait_for_run(
            provider,
            thread.id,
            run,
            interval=settings.poll_interval_seconds,
            timeout=settings.run_timeout_seconds,
        )

    # Step 7: Extract (provider resources are already released here)
    return extract_tool_call(run)


async def fetch_pdf(pdf_link: str, settings: Settings) -> DownloadedFile:
    try:
        return await asyncio.to_thread(
            download_file,
            pdf_link,
            settings.scratch_dir,
            None,
            settings.download_timeout_seconds,
        )
    except InvalidURLError as e:
        logger.info(f"Rejected PDF link {pdf_link!r}: {e}")
        raise InvalidPdfUrl() from e
    except DownloadError as e:
        logger.error(f"PDF download failed: {e}")
        raise PdfDownloadFailed() from e
    except FileWriteError as e:
        logger.error(f"PDF write failed: {e}")
        raise PdfWriteFailed() from e


async def provider_call(coro, check_file_type: bool = False):
    """Await a provider call, translating openai errors at the step boundary."""
    try:
        return await coro
    except openai.BadRequestError as e:
        if check_file_type and is_unsupported_file_error(e):
            raise UnsupportedFileType() from e
        logger.error(f"OpenAI rejected request: {provider_error_message(e)}")
        raise ProviderError() from e
    except openai.OpenAIError as e:
        logger.error(f"OpenAI request failed: {e}")
        raise ProviderError() from e


async def _release(what: str, resource_id: str, delete, *args):
    try:
        await delete(*args)
        logger.info(f"Deleted {what} {resource_id}")
    except Exception as e:
        logger.warning(f"Failed to delete {what} {resource_id}: {e}")


@asynccontextmanager
async def uploaded_file(provider, downloaded: DownloadedFile):
    """Upload the scratch file; the local copy is removed right after the upload."""
    try:
        file = await provider.upload_file(downloaded.local_path, downloaded.filename)
    except (openai.OpenAIError, OSError) as e:
        logger.error(f"Upload of {downloaded.filename} failed: {e}")
        raise FileUploadFailed() from e
    finally:
        delete_file(downloaded.local_path)

    logger.info(f"Uploaded {downloaded.filename} as {file.id}")
    try:
        yield file
    finally:
        await _release("file", file.id, provider.delete_file, file.id)


@asynccontextmanager
async def ephemeral_assistant(provider, file_id: str):
    assistant = await provider_call(provider.create_assistant(file_id), check_file_type=True)
    logger.info(f"Created assistant {assistant.id}")
    try:
        yield assistant
    finally:
        await _release("assistant", assistant.id, provider.delete_assistant, assistant)


async def poll_run(provider, thread_id: str, run, interval: float = 1.0):
    """Poll every `interval` seconds until the run leaves the pending states."""
    while run.status in PENDING_RUN_STATUSES:
        await asyncio.sleep(interval)
        run = await provider_call(provider.get_run(thread_id, run.id))
        logger.debug(f"Run {run.id} status: {run.status}")
    return run


async def wait_for_run(provider, thread_id: str, run, interval: float = 1.0, timeout: float = 240.0):
    try:
        return await asyncio.wait_for(poll_run(provider, thread_id, run, interval), timeout=timeout)
    except asyncio.TimeoutError:
        logger.error(f"Run {run.id} did not finish within {timeout}s, cancelling")
        try:
            await provider.cancel_run(thread_id, run.id)
        except Exception as e:
            logger.warning(f"Failed to cancel run {run.id}: {e}")
        raise RunTimeout()


def extract_tool_call(run) -> Dict[str, Any]:
    """Map a settled run to the checkEligibility tool call, or raise."""
    if run.status == "failed":
        last_error = run.last_error
        if last_error and last_error.code == "rate_limit_exceeded":
            raise OpenAIRateLimitExceeded()
        logger.error(f"Run {run.id} failed: {last_error}")
        raise RunFailed()

    if run.status != "requires_action":
        logger.warning(f"Run {run.id} ended with unexpected status {run.status}")
        raise AssistantError()

    required_action = run.required_action
    if not required_action or required_action.type != "submit_tool_outputs":
        logger.warning(f"Run {run.id} requires unexpected action {required_action}")
        raise AssistantError()

    tool_calls = required_action.submit_tool_outputs.tool_calls or []
    for call in tool_calls:
        if call.function.name == CHECK_ELIGIBILITY_FUNCTION:
            return call.model_dump()

    logger.warning(f"Run {run.id} returned no {CHECK_ELIGIBILITY_FUNCTION} call ({len(tool_calls)} tool calls)")
    raise AssistantError()
