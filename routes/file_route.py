from typing import List

from fastapi import APIRouter, File, HTTPException, Request, UploadFile
from pydantic import BaseModel

from controllers.file_controller import confirm_file, discard_file, stage_files

router = APIRouter(prefix="/files")


class ConfirmPayload(BaseModel):
    accept: bool


@router.post("")
async def upload_files(request: Request, files: List[UploadFile] = File(...)):
    """Stage an attachment for the next message; only the last file is kept."""
    try:
        return await stage_files(request, files)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.post("/confirm")
async def confirm_upload(request: Request, payload: ConfirmPayload):
    """Accept or decline truncation of the pending file."""
    try:
        return await confirm_file(request, payload.accept)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.delete("")
async def discard_upload(request: Request):
    try:
        return await discard_file(request)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))
