from typing import Any, Dict, List

from fastapi import HTTPException, Request, UploadFile

from controllers.session_controller import current_workspace, session_view
from models.processed_file import UploadedFile, ValidationResult


def validation_view(name: str, result: ValidationResult) -> Dict[str, Any]:
    return {
        "name": name,
        "file_kind": result.file_kind.value,
        "accepted": result.accepted,
        "needs_confirmation": result.needs_confirmation,
        "confirmation_kind": result.confirmation_kind.value if result.confirmation_kind else None,
        "size_formatted": result.size_formatted,
        "error": result.error,
    }


async def stage_files(request: Request, files: List[UploadFile]) -> Dict[str, Any]:
    """Validate uploaded files and stage the last one for the next send.

    Args:
        request: FastAPI Request (used to resolve the caller's workspace).
        files: Uploaded files; only the last one is kept.

    Returns:
        A dict with the validation outcome and the refreshed session view.
    """
    if not files:
        raise HTTPException(status_code=400, detail="At least one file is required")
    workspace = await current_workspace(request)

    uploads = []
    for file in files:
        data = await file.read()
        uploads.append(
            UploadedFile(
                name=file.filename or "upload",
                content_type=file.content_type or "",
                data=data,
            )
        )

    result = await workspace.stager.stage(uploads)
    return {
        "validation": validation_view(uploads[-1].name, result),
        "ignored_files": len(uploads) - 1,
        "session": session_view(workspace),
    }


async def confirm_file(request: Request, accept: bool) -> Dict[str, Any]:
    """Accept or decline truncation of the pending file."""
    workspace = await current_workspace(request)
    try:
        processed = await workspace.stager.confirm(accept)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {
        "accepted": processed is not None,
        "was_truncated": bool(processed and processed.was_truncated),
        "session": session_view(workspace),
    }


async def discard_file(request: Request) -> Dict[str, Any]:
    workspace = await current_workspace(request)
    workspace.stager.clear()
    return {"session": session_view(workspace)}
