from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from controllers.export_controller import render_preview, spec_docx, spec_html
from controllers.tts_controller import synthesize_speech

router = APIRouter()


class RenderRequest(BaseModel):
    markdown: str = ""
    strip_audio: bool = False


class SpeechRequest(BaseModel):
    text: str


@router.get("/spec/html")
async def get_spec_html(request: Request, source: Optional[int] = None):
    """Return the sanitized HTML view of the final specification or of one assistant message."""
    try:
        return await spec_html(request, source)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.get("/spec/docx")
async def get_spec_docx(request: Request):
    """Download the final specification as a .docx file."""
    try:
        return await spec_docx(request)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.post("/render")
async def post_render(payload: RenderRequest):
    """Render arbitrary markdown with the same pipeline as the specification view."""
    try:
        return await render_preview(payload.markdown, payload.strip_audio)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.post("/tts")
async def post_tts(request: Request, payload: SpeechRequest):
    """Synthesize the spoken summary of a message as MP3."""
    try:
        return await synthesize_speech(request, payload.text)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))
