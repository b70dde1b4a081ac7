import logging
import os
from pathlib import Path

import typer
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from selection_viewer.loader import SelectionStore
from selection_viewer.routes import create_routes

logger = logging.getLogger(__name__)

cli = typer.Typer()


def create_app(
    jsonl_path: Path | None = None,
    report_path: Path | None = None,
) -> FastAPI:
    """Create FastAPI app over a selection file and/or its report."""
    app = FastAPI(title="quizbasket Selection Viewer API")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    store = SelectionStore()
    if jsonl_path is not None:
        count = store.load_jsonl(jsonl_path)
        logger.info("Loaded %d items from %s", count, jsonl_path)
    if report_path is not None:
        report = store.load_report(report_path)
        logger.info(
            "Loaded report for seed %s (%d baskets)",
            report.seed_used,
            len(report.basket_status),
        )
    app.include_router(create_routes(store))
    return app


@cli.command()
def serve(
    jsonl_path: Path | None = typer.Argument(
        None, help="Selection JSONL written by `quizbasket generate -o`"
    ),
    report_path: Path | None = typer.Option(
        None, "--report", help="Report JSON written by `quizbasket generate`"
    ),
    host: str = typer.Option("127.0.0.1", help="Host to bind to"),
    port: int = typer.Option(8000, help="Port to bind to"),
) -> None:
    """Start the selection viewer API server."""
    if jsonl_path is None and report_path is None:
        raise typer.BadParameter("Must provide either JSONL_PATH or --report")

    if jsonl_path is not None and not jsonl_path.exists():
        raise typer.BadParameter(f"File not found: {jsonl_path}")

    if report_path is not None and not report_path.exists():
        raise typer.BadParameter(f"File not found: {report_path}")

    logging.basicConfig(level=logging.INFO)
    app = create_app(jsonl_path, report_path)
    uvicorn.run(app, host=host, port=port)


# Lazy app for uvicorn: selection_viewer.main:app (no loading at import time).
_default_jsonl = Path(
    os.environ.get("QUIZBASKET_VIEWER_JSONL", "selection.jsonl")
)
_default_report = os.environ.get("QUIZBASKET_VIEWER_REPORT")
_cached_app: FastAPI | None = None


def get_app() -> FastAPI:
    """Return the FastAPI app, creating it from env vars on first use."""
    global _cached_app
    if _cached_app is None:
        jsonl_path = _default_jsonl if _default_jsonl.exists() else None
        report_path = Path(_default_report) if _default_report else None
        _cached_app = create_app(jsonl_path, report_path)
    return _cached_app


class _LazyASGI:
    """ASGI callable that delegates to get_app() on first request."""

    async def __call__(self, scope, receive, send):
        await get_app()(scope, receive, send)


app = _LazyASGI()

if __name__ == "__main__":
    cli()
