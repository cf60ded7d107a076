from __future__ import annotations

import asyncio
import base64
import json
from dataclasses import replace
from pathlib import Path

import typer
import uvicorn

from unbind.client import run_local, stream_analysis
from unbind.errors import UnbindError
from unbind.logs import configure_logging
from unbind.pipeline import AnalysisServices
from unbind.policy import AnalysisPolicy, resolve_strategy
from unbind.store import AnalysisSession

app = typer.Typer(help="Unbind: turn a bookshelf photo into a list of books")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Host interface for the API server."),
    port: int = typer.Option(3000, "--port", help="Port for the API server."),
    log_level: str | None = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR."),
):
    """
    Start the FastAPI server that exposes POST /api/analyze.
    """
    configure_logging(log_level)
    uvicorn.run("unbind.api_server:app", host=host, port=port, reload=False)


@app.command()
def analyze(
    file: Path = typer.Argument(..., exists=True, readable=True, help="Bookshelf photo (JPEG, PNG, ...)"),
    server: str | None = typer.Option(None, "--server", help="Stream from a running server instead of in-process."),
    strategy: str | None = typer.Option(None, "--strategy", help="sequential or concurrent."),
    verify: bool | None = typer.Option(None, "--verify/--no-verify", help="Check titles against book catalogs."),
    filter_full_image: bool | None = typer.Option(
        None,
        "--filter-full-image/--no-filter-full-image",
        help="Drop detections covering most of the photo.",
    ),
    verifier: str | None = typer.Option(None, "--verifier", help="Catalog mode: auto, google, openlibrary, none."),
    log_level: str | None = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR."),
):
    configure_logging(log_level)
    image_b64 = base64.b64encode(file.read_bytes()).decode("ascii")
    session = AnalysisSession()

    try:
        if server:
            asyncio.run(stream_analysis(server, image_b64, session))
        else:
            policy = AnalysisPolicy.from_env()
            policy = replace(
                policy,
                strategy=resolve_strategy(strategy) if strategy else policy.strategy,
                verify=policy.verify if verify is None else verify,
                filter_full_image_boxes=(
                    policy.filter_full_image_boxes if filter_full_image is None else filter_full_image
                ),
            )
            services = AnalysisServices.default(policy, verifier_mode=verifier)
            asyncio.run(run_local(image_b64, session, services, policy))
    except UnbindError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=2) from exc

    typer.echo(json.dumps(session.to_dict(), indent=2))
    if session.error:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
