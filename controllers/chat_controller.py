"""Chat turn handlers: send, generate the specification, abort."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import HTTPException, Request

from controllers.session_controller import current_workspace, session_view


async def send_message(request: Request, text: str) -> Dict[str, Any]:
	"""Send the user's text together with the staged attachment, if any."""
	workspace = await current_workspace(request)
	orchestrator = workspace.orchestrator
	if orchestrator.is_loading:
		raise HTTPException(status_code=409, detail="A request is already in progress")
	if workspace.stager.pending is not None:
		raise HTTPException(status_code=409, detail="The staged file is waiting for confirmation")
	if not (text or "").strip() and workspace.stager.ready is None:
		raise HTTPException(status_code=400, detail="Message text or an attachment is required")

	attachments = workspace.stager.take()
	ok = await orchestrator.send(text, attachments)
	return {"ok": ok, "session": session_view(workspace)}


async def generate_spec(request: Request) -> Dict[str, Any]:
	"""Request the final (or regenerated) specification document."""
	workspace = await current_workspace(request)
	orchestrator = workspace.orchestrator
	if orchestrator.is_loading:
		raise HTTPException(status_code=409, detail="A request is already in progress")
	ok = await orchestrator.generate_spec()
	return {"ok": ok, "error": None if ok else orchestrator.last_error, "session": session_view(workspace)}


async def abort_request(request: Request) -> Dict[str, Any]:
	"""Cancel the caller's in-flight provider call."""
	workspace = await current_workspace(request)
	aborted = workspace.orchestrator.abort()
	return {"aborted": aborted, "session": session_view(workspace)}
