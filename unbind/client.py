from __future__ import annotations

import logging
from typing import Callable

import httpx

from unbind.errors import ValidationError
from unbind.pipeline import AnalysisServices, analyze_stream
from unbind.policy import AnalysisPolicy
from unbind.sse import SSEParser
from unbind.store import AnalysisSession

logger = logging.getLogger(__name__)


async def stream_analysis(
    server_url: str,
    image_b64: str,
    session: AnalysisSession,
    client_factory: Callable[[], httpx.AsyncClient] | None = None,
) -> AnalysisSession:
    """POST a photo to a running server and fold its event stream into ``session``."""
    factory = client_factory or (lambda: httpx.AsyncClient(timeout=httpx.Timeout(10.0, read=None)))
    session.set_image(image_b64)
    session.start_analysis()
    url = f"{server_url.rstrip('/')}/api/analyze"
    async with factory() as client:
        async with client.stream("POST", url, json={"imageBase64": image_b64}) as response:
            if response.status_code == 400:
                await response.aread()
                raise ValidationError(response.json().get("error", "Invalid request"))
            response.raise_for_status()
            parser = SSEParser()
            async for line in response.aiter_lines():
                event = parser.feed_line(line)
                if event is not None:
                    logger.debug("Received %s event", event.event)
                    session.apply_event(event)
            tail = parser.flush()
            if tail is not None:
                session.apply_event(tail)
    return session


async def run_local(
    image_b64: str,
    session: AnalysisSession,
    services: AnalysisServices,
    policy: AnalysisPolicy | None = None,
) -> AnalysisSession:
    """Same as ``stream_analysis`` but runs the pipeline in-process."""
    session.set_image(image_b64)
    session.start_analysis()
    async for event in analyze_stream(image_b64, services, policy):
        session.apply_event(event)
    return session


__all__ = ["run_local", "stream_analysis"]
