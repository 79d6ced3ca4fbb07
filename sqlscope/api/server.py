"""FastAPI backend for the sqlscope web UI."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Form, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, HTMLResponse, PlainTextResponse
from pydantic import BaseModel

from sqlscope import __version__
from sqlscope.config import LineageConfig
from sqlscope.core.analyzer import analyze
from sqlscope.core.errors import AnalysisError
from sqlscope.core.report import render_error, render_text
from sqlscope.core.schema import SchemaProvider

# Path to the bundled web UI files
WEB_DIR = Path(__file__).parent.parent / "web"


class AnalyzeRequest(BaseModel):
    sql: str


def create_app(
    config: Optional[LineageConfig] = None,
    provider: Optional[SchemaProvider] = None,
) -> FastAPI:
    """Build the web application.

    Args:
        config: Analyzer settings. Read from the environment when omitted.
        provider: Schema provider. Chosen by ``config`` when omitted.
    """
    config = config or LineageConfig.from_env()
    if provider is None:
        provider = config.build_provider()

    app = FastAPI(
        title="sqlscope",
        description="Extract leaf tables and used columns from SQL queries",
        version=__version__,
    )

    # CORS for development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/", response_class=HTMLResponse)
    async def serve_ui():
        """Serve the main web UI."""
        return FileResponse(WEB_DIR / "index.html", media_type="text/html")

    @app.get("/api/health")
    async def health():
        return {"status": "ok", "version": __version__}

    @app.post("/api/analyze")
    def analyze_json(request: AnalyzeRequest):
        """Analyze a query and return the lineage result as JSON.

        The response carries the LineageResult fields plus a rendered
        ``report`` text.
        """
        try:
            result = analyze(request.sql, provider=provider, config=config)
        except AnalysisError as e:
            raise HTTPException(status_code=400, detail=e.message)

        data = result.model_dump()
        data["report"] = render_text(result)
        return data

    @app.post("/analyze", response_class=PlainTextResponse)
    def analyze_form(sql: str = Form(...)):
        """Analyze a query submitted from the HTML form; always answers with text."""
        try:
            result = analyze(sql, provider=provider, config=config)
        except AnalysisError as e:
            return render_error(e.message)
        return render_text(result)

    return app


app = create_app()
