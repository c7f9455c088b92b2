import asyncio
from pathlib import PurePath

from fastapi import APIRouter, File, Form, HTTPException, Request, UploadFile

from chartfill.config import settings
from chartfill.errors import DrumTrackNotFoundError, InvalidConfigError
from chartfill.models.chart import Difficulty
from chartfill.models.report import ChartReport
from chartfill.models.scan import ChartFile
from chartfill.services.folder_report import build_chart_report

router = APIRouter(prefix="/api/charts", tags=["charts"])


@router.post("/scan", response_model=ChartReport)
async def scan_folder(
    request: Request,
    files: list[UploadFile] = File(...),
    difficulty: Difficulty = Form(Difficulty.expert),
    lane_map: str | None = Form(None),
    song_id: str | None = Form(None),
    fingerprint: bool = Form(False),
):
    """Scan an uploaded song folder and detect its drum fills."""
    # Browsers send folder uploads as "Folder/notes.chart"
    folder = [
        ChartFile(name=PurePath(upload.filename or "").name, data=await upload.read())
        for upload in files
    ]
    config = {"difficulty": difficulty, "lane_map": lane_map or settings.default_lane_map}
    pool = request.app.state.worker_pool if fingerprint else None

    try:
        return await asyncio.to_thread(build_chart_report, folder, config, song_id, pool)
    except DrumTrackNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidConfigError as e:
        raise HTTPException(status_code=422, detail=e.messages)
