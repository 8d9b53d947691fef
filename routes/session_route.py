"""FastAPI routes for the interview session lifecycle."""

from fastapi import APIRouter, HTTPException, Request

from controllers.session_controller import back_to_interview, get_session, reset_session

router = APIRouter(prefix="/session")


@router.get("")
async def get_session_route(request: Request):
	try:
		return await get_session(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/reset")
async def reset_session_route(request: Request):
	try:
		return await reset_session(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/back-to-interview")
async def back_to_interview_route(request: Request):
	try:
		return await back_to_interview(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
