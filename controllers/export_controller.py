import asyncio
from typing import Optional

from fastapi import HTTPException, Request
from fastapi.responses import HTMLResponse, Response

from controllers.session_controller import current_workspace
from models.session_models import Role
from services.markdown.docx_exporter import DocxExporter
from services.markdown.html_renderer import render_markdown

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
DOCX_FILENAME = "specifications.docx"


async def spec_html(request: Request, source: Optional[int] = None) -> HTMLResponse:
    """Render the final specification, or one assistant message, as sanitized HTML.

    Args:
        request: FastAPI Request (used to resolve the caller's workspace).
        source: Optional index of an assistant message to render instead.

    Raises:
        HTTPException(404) if there is nothing to render.
    """
    workspace = await current_workspace(request)
    state = workspace.session.state

    if source is not None:
        if not 0 <= source < len(state.messages):
            raise HTTPException(status_code=404, detail="Message not found")
        message = state.messages[source]
        if message.role is not Role.ASSISTANT:
            raise HTTPException(status_code=400, detail="Only assistant messages are rendered")
        return HTMLResponse(render_markdown(message.display_content, strip_audio=True))

    if not state.final_spec:
        raise HTTPException(status_code=404, detail="No specification has been generated yet")
    return HTMLResponse(render_markdown(state.final_spec, strip_audio=True))


async def spec_docx(request: Request) -> Response:
    """Export the final specification as a Word document download."""
    workspace = await current_workspace(request)
    final_spec = workspace.session.state.final_spec
    if not final_spec:
        raise HTTPException(status_code=404, detail="No specification has been generated yet")

    # python-docx is synchronous; keep the event loop free while it builds the file.
    data = await asyncio.to_thread(DocxExporter().export, final_spec)
    return Response(
        content=data,
        media_type=DOCX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{DOCX_FILENAME}"'},
    )


async def render_preview(markdown: str, strip_audio: bool = False) -> HTMLResponse:
    return HTMLResponse(render_markdown(markdown, strip_audio=strip_audio))
