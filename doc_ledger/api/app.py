"""
HTTP interface for document ingestion.

Thin glue over the ingestion pipeline: multipart upload in, record out.

Run with: uvicorn doc_ledger.api.app:create_app --factory
"""

import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI, File, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from doc_ledger.config.loader import AppConfig, load_config
from doc_ledger.core.errors import InvalidInput, LedgerUpdateFailure, StorageWriteFailure
from doc_ledger.core.pipeline import IngestionPipeline, build_pipeline
from doc_ledger.logging_setup import configure_logging

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[AppConfig] = None,
    pipeline: Optional[IngestionPipeline] = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        config: Application configuration (loaded from the environment if omitted)
        pipeline: Pre-built pipeline, mainly for tests

    Returns:
        Configured FastAPI app
    """
    config = config or load_config()
    configure_logging(config.logging.level)
    pipeline = pipeline or build_pipeline(config)

    app = FastAPI(title="Document Ledger")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.pipeline = pipeline

    @app.get("/health")
    def health() -> dict:
        """Service liveness and current usage ledger."""
        return pipeline.ledger_store.get_status()

    @app.post("/extract-hybrid")
    def extract_hybrid(file: Optional[UploadFile] = File(None)):
        """Ingest an uploaded document and return its record."""
        buffer = file.file.read() if file is not None else None
        try:
            record = pipeline.ingest(buffer)
        except InvalidInput as e:
            return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=e.to_dict())
        except (StorageWriteFailure, LedgerUpdateFailure) as e:
            logger.error("Ingestion of %s failed: %s", file.filename, e)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=e.to_dict()
            )
        return record.to_dict()

    return app


def main() -> None:
    """Run the HTTP server on the configured port."""
    config = load_config()
    app = create_app(config)
    logger.info("Server listening on port %d", config.server.port)
    uvicorn.run(app, host="0.0.0.0", port=config.server.port)


if __name__ == "__main__":
    main()
