"""FastAPI routes for chat turns and specification generation."""

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from controllers.chat_controller import abort_request, generate_spec, send_message

router = APIRouter(prefix="/chat")


class MessagePayload(BaseModel):
	text: str = ""


@router.post("/messages")
async def post_message_route(request: Request, payload: MessagePayload):
	try:
		return await send_message(request, payload.text)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/generate-spec")
async def generate_spec_route(request: Request):
	try:
		return await generate_spec(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/abort")
async def abort_route(request: Request):
	try:
		return await abort_request(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
