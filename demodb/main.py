from fastapi import FastAPI, BackgroundTasks, HTTPException
from fastapi.responses import StreamingResponse, PlainTextResponse
from pathlib import Path
import io
import logging
import uuid
from datetime import datetime, timezone

from .db import Base, engine, get_session, ensure_database_exists
from . import models
from .errors import FetchError, NetworkError
from .fetcher import fetch_dataset
from .logging_utils import configure_logging
from .schemas import FetchResponse, FetchRunResponse, TriggerFetchResponse


logger = logging.getLogger(__name__)

app = FastAPI(title="Demo Dataset Fetcher")


# Create DB tables on startup
@app.on_event("startup")
def on_startup() -> None:
    configure_logging()
    ensure_database_exists()
    Base.metadata.create_all(bind=engine)


@app.post("/trigger_fetch", response_model=TriggerFetchResponse)
def trigger_fetch(background_tasks: BackgroundTasks) -> TriggerFetchResponse:
    with get_session() as session:
        fetch_id = str(uuid.uuid4())
        run = models.FetchRun(
            id=fetch_id,
            status="Running",
            created_at=_utcnow(),
        )
        session.add(run)
        session.commit()

        background_tasks.add_task(_run_fetch_task, fetch_id)

    return TriggerFetchResponse(fetch_id=fetch_id)


def _utcnow() -> datetime:
    # Columns store naive UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _mark_failed(session, fetch_id: str, exc: Exception) -> None:
    run: models.FetchRun | None = session.get(models.FetchRun, fetch_id)
    if run is not None:
        run.status = "Failed"
        run.completed_at = _utcnow()
        run.error_message = f"{type(exc).__name__}: {exc}"
        session.commit()


def _run_fetch_task(fetch_id: str) -> None:
    with get_session() as session:
        try:
            result = fetch_dataset()
            run: models.FetchRun | None = session.get(models.FetchRun, fetch_id)
            if run is not None:
                run.status = "Complete"
                run.completed_at = _utcnow()
                run.file_path = str(result.init_sql_path)
                run.size_bytes = result.init_sql_bytes
                run.error_message = None
                session.commit()
        except FetchError as exc:
            logger.error("Fetch %s failed: %s", fetch_id, exc)
            _mark_failed(session, fetch_id, exc)
        except Exception as exc:  # noqa: BLE001 - top-level task guard
            logger.exception("Fetch %s crashed", fetch_id)
            session.rollback()
            _mark_failed(session, fetch_id, exc)


@app.post("/fetch", response_model=FetchResponse)
def fetch() -> FetchResponse:
    try:
        result = fetch_dataset()
    except NetworkError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except FetchError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return FetchResponse(status="ok", init_sql=str(result.init_sql_path), size_bytes=result.init_sql_bytes)


@app.get("/get_fetch")
def get_fetch(fetch_id: str):
    with get_session() as session:
        run: models.FetchRun | None = session.get(models.FetchRun, fetch_id)
        if run is None:
            raise HTTPException(status_code=404, detail="fetch_id not found")

        if run.status != "Complete":
            return PlainTextResponse(content=run.status)

        path = Path(run.file_path)
        if not path.exists():
            raise HTTPException(status_code=500, detail="init.sql missing")

        buf = io.BytesIO(path.read_bytes())
        headers = {
            "X-Fetch-Status": "Complete",
            "Content-Disposition": f"attachment; filename={path.name}",
        }
        return StreamingResponse(buf, media_type="application/sql", headers=headers)


@app.get("/debug_fetch", response_model=FetchRunResponse)
def debug_fetch(fetch_id: str) -> FetchRunResponse:
    with get_session() as session:
        run: models.FetchRun | None = session.get(models.FetchRun, fetch_id)
        if run is None:
            raise HTTPException(status_code=404, detail="fetch_id not found")
        return FetchRunResponse(
            fetch_id=run.id,
            status=run.status,
            created_at=run.created_at,
            completed_at=run.completed_at,
            file_path=run.file_path,
            size_bytes=run.size_bytes,
            error_message=run.error_message,
        )
