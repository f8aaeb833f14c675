import json
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from grant_eligibility.config import Settings
from grant_eligibility.data.rate_limit import build_rate_limiter, client_key
from .errors import EligibilityError, MissingPdfUrl
from .executor import run_eligibility_pipeline
from .gpt_client import ProviderClient
from .models import EligibilityRequest, EligibilityResponse, ErrorResponse

logger = logging.getLogger(__name__)


def create_app(settings: Settings = None, provider=None, rate_limiter=None) -> FastAPI:
    settings = settings or Settings.from_env()
    logging.basicConfig(level=settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Collaborators passed in by the caller are not ours to close
        owned = []
        app.state.provider = provider
        app.state.rate_limiter = rate_limiter
        if app.state.provider is None:
            app.state.provider = ProviderClient.from_settings(settings)
            owned.append(app.state.provider)
        if app.state.rate_limiter is None:
            app.state.rate_limiter = build_rate_limiter(settings)
            owned.append(app.state.rate_limiter)
        logger.info(f"Eligibility service starting (rate limiting: {app.state.rate_limiter.enabled})")
        try:
            yield
        finally:
            logger.info("Eligibility service shutting down")
            for collaborator in owned:
                await collaborator.close()

    app = FastAPI(title="Grant Eligibility Parser", lifespan=lifespan)
    app.state.settings = settings

    @app.exception_handler(EligibilityError)
    async def eligibility_error_handler(request: Request, exc: EligibilityError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    error_responses = {status: {"model": ErrorResponse} for status in (400, 429, 500, 502, 504)}

    @app.post("/eligibility", response_model=EligibilityResponse, responses=error_responses)
    @app.post("/api/parseEligibility", response_model=EligibilityResponse, responses=error_responses)
    async def parse_eligibility(request: Request):
        """
        Parse the eligibility criteria out of the grant PDF at `pdfLink`.
        """
        try:
            body = await request.json()
            eligibility_request = EligibilityRequest.model_validate(body)
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError):
            raise MissingPdfUrl("No request body provided.")

        client_id = client_key(request.headers.get("x-forwarded-for"))
        logger.info(f"Eligibility request for {eligibility_request.pdfLink!r} from {client_id}")

        try:
            criteria = await run_eligibility_pipeline(
                eligibility_request.pdfLink,
                client_id,
                provider=request.app.state.provider,
                rate_limiter=request.app.state.rate_limiter,
                settings=request.app.state.settings,
            )
        except EligibilityError as e:
            logger.info(f"Eligibility request failed: {e.code}")
            raise
        except Exception:
            logger.exception("Unexpected error while parsing eligibility")
            raise EligibilityError()

        return {"criteria": criteria}

    @app.get("/health")
    async def health(request: Request):
        return {"status": "ok", "rate_limiting": request.app.state.rate_limiter.enabled}

    return app


app = create_app()

# To run: uvicorn grant_eligibility.eligibility_agent.main:app --reload
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
