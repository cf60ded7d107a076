from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse

from unbind import ENGINE_VERSION
from unbind.errors import ValidationError
from unbind.pipeline import AnalysisServices, analyze_stream
from unbind.policy import AnalysisPolicy
from unbind.sse import SSE_HEADERS, encode_stream

logger = logging.getLogger(__name__)

app = FastAPI(title="Unbind", version=ENGINE_VERSION)


@app.exception_handler(ValidationError)
async def validation_error_handler(_request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": str(exc)})


def get_policy() -> AnalysisPolicy:
    return AnalysisPolicy.from_env()


@lru_cache(maxsize=2)
def _services_for(verify: bool) -> AnalysisServices:
    return AnalysisServices.default(AnalysisPolicy(verify=verify))


def get_services(policy: AnalysisPolicy = Depends(get_policy)) -> AnalysisServices:
    return _services_for(policy.verify)


async def read_image_payload(request: Request) -> str:
    try:
        body = await request.json()
    except ValueError:
        body = None
    image = body.get("imageBase64") if isinstance(body, dict) else None
    if not isinstance(image, str) or not image.strip():
        raise ValidationError("imageBase64 is required")
    return image


@app.get("/api/health")
def health():
    return {"status": "ok", "version": ENGINE_VERSION}


@app.post("/api/analyze")
async def analyze(
    request: Request,
    policy: AnalysisPolicy = Depends(get_policy),
    services: AnalysisServices = Depends(get_services),
):
    image_b64 = await read_image_payload(request)
    logger.info("Starting analysis (strategy=%s, verify=%s)", policy.strategy.value, policy.verify)
    events = analyze_stream(image_b64, services, policy)
    return StreamingResponse(encode_stream(events), media_type="text/event-stream", headers=SSE_HEADERS)


__all__ = ["app", "get_policy", "get_services"]
