"""Session lifecycle helpers for the interview workflow."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import HTTPException, Request

from dal.session_dal import SessionStoreError
from services.interview.session_store import InterviewWorkspace, SessionStore

USER_HEADER = "X-User-Id"


def current_user_id(request: Request) -> str:
	"""Return the acting user identity, or reject the request with 401."""
	user_id = (request.headers.get(USER_HEADER) or "").strip()
	if not user_id:
		raise HTTPException(status_code=401, detail=f"Missing {USER_HEADER} header")
	return user_id


async def current_workspace(request: Request) -> InterviewWorkspace:
	"""Load the caller's workspace, translating storage failures to 503."""
	store: SessionStore = request.app.state.session_store
	try:
		return await store.get_or_load(current_user_id(request))
	except SessionStoreError as exc:
		raise HTTPException(
			status_code=503,
			detail={"state": "connection_error", "error": str(exc)},
		) from exc


def session_view(workspace: InterviewWorkspace) -> Dict[str, Any]:
	"""Serialize a workspace for the client."""
	state = workspace.session.state
	orchestrator = workspace.orchestrator
	stager = workspace.stager
	staged = None
	if stager.ready is not None:
		staged = {
			"name": stager.ready.name,
			"kind": stager.ready.kind.value,
			"was_truncated": stager.ready.was_truncated,
			"was_resized": stager.ready.was_resized,
		}
	elif stager.pending is not None:
		staged = {"name": stager.pending.upload.name, "awaiting_confirmation": True}
	return {
		"user_id": state.user_id,
		"state": state.phase.value,
		"messages": [
			{
				"role": message.role.value,
				"content": message.display_content,
				"synthetic": message.synthetic,
				"created_at": message.created_at,
			}
			for message in state.messages
		],
		"question_count": state.question_count,
		"final_spec": state.final_spec,
		"is_modification_mode": state.is_modification_mode,
		"spec_message_count": state.spec_message_count,
		"can_generate_spec": orchestrator.can_generate_spec,
		"is_loading": orchestrator.is_loading,
		"last_error": orchestrator.last_error or workspace.session.last_save_error,
		"staged_file": staged,
	}


async def get_session(request: Request) -> Dict[str, Any]:
	"""Load or create the caller's session."""
	workspace = await current_workspace(request)
	return session_view(workspace)


async def reset_session(request: Request) -> Dict[str, Any]:
	"""Delete the session's stored blobs and return to the welcome state."""
	workspace = await current_workspace(request)
	workspace.orchestrator.abort()
	workspace.stager.clear()
	try:
		deleted = await workspace.session.reset(request.app.state.blob_store)
	except SessionStoreError as exc:
		raise HTTPException(status_code=503, detail={"state": "connection_error", "error": str(exc)}) from exc
	view = session_view(workspace)
	view["deleted_blobs"] = deleted
	return view


async def back_to_interview(request: Request) -> Dict[str, Any]:
	"""Return from the complete phase to the interview."""
	workspace = await current_workspace(request)
	workspace.orchestrator.back_to_interview()
	return session_view(workspace)
