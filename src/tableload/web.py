"""FastAPI application: upload a spreadsheet, load it, show what was read."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.responses import HTMLResponse

from tableload import create_service
from tableload.config import ConfigError, Settings
from tableload.loader import BulkTableLoader
from tableload.parsing import FileDecodeError, UnsupportedFileType, parse_upload
from tableload.service import DatabaseService
from tableload.snapshot import write_snapshot

logger = logging.getLogger(__name__)

NO_FILE_MESSAGE = "No file uploaded. Please select a file."
EMPTY_FILE_MESSAGE = "The file is empty or could not be read."

INDEX_HTML = """<!DOCTYPE html>
<html>
<head><title>Upload data</title></head>
<body>
<h1>Upload a CSV or Excel file</h1>
<form action="/upload" method="post" enctype="multipart/form-data">
<input type="file" name="file" accept=".csv,.xlsx,.xls">
<button type="submit">Upload</button>
</form>
</body>
</html>
"""


def create_app(
    settings: Settings | None = None,
    service: DatabaseService | None = None,
) -> FastAPI:
    """Build the application.

    When ``service`` is given the caller owns its lifecycle. Otherwise a pool
    is created from ``settings`` on startup and closed on shutdown.
    """
    if settings is None:
        settings = Settings.from_env(require_database=service is None)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.service is not None:
            yield
            return
        if settings.database_url is None:
            raise ConfigError("Database not configured: set DATABASE_URL")
        owned = create_service(
            settings.database_url,
            settings.pool_size,
            settings.acquire_timeout,
            settings.statement_timeout,
        )
        owned.connect()
        app.state.service = owned
        app.state.loader = BulkTableLoader(owned)
        try:
            yield
        finally:
            owned.close()
            app.state.service = None
            app.state.loader = None
            logger.info("Database pool closed")

    app = FastAPI(title="tableload", lifespan=lifespan)
    app.state.settings = settings
    app.state.service = service
    app.state.loader = BulkTableLoader(service) if service is not None else None

    @app.get("/", response_class=HTMLResponse)
    def index():
        return INDEX_HTML

    @app.get("/health")
    def health(request: Request):
        service = request.app.state.service
        return {
            "status": "ok" if service is not None else "starting",
            "pool_available": service.available() if service is not None else 0,
        }

    @app.post("/upload")
    def upload(request: Request, file: UploadFile | None = File(None)):
        """Decode the upload, replace the target table's rows, echo the data."""
        if file is None or not file.filename:
            raise HTTPException(status_code=400, detail=NO_FILE_MESSAGE)

        try:
            rows = parse_upload(file.filename, file.file.read())
        except UnsupportedFileType as e:
            raise HTTPException(status_code=415, detail=str(e)) from e
        except FileDecodeError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        finally:
            file.file.close()

        if not rows:
            raise HTTPException(status_code=400, detail=EMPTY_FILE_MESSAGE)

        state = request.app.state
        result = state.loader.load(state.settings.target_table, rows)
        db = result.to_dict()
        if not result.success:
            logger.error("Upload of %s failed: %s", file.filename, result.error)
            if not state.settings.expose_errors:
                db["error"] = None
            return {"db": db, "data": None}

        logger.info("Upload of %s: %s", file.filename, result.message)
        if state.settings.snapshot_dir is not None:
            try:
                write_snapshot(state.settings.snapshot_dir, rows)
            except OSError as e:
                logger.error("Error saving JSON snapshot: %s", e)
        return {"db": db, "data": rows}

    return app
