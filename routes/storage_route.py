from fastapi import APIRouter, HTTPException, Request

from controllers.storage_controller import get_blob

router = APIRouter()


@router.get("/storage/blobs/{name}")
async def get_stored_blob(request: Request, name: str):
	"""Return the bytes of a stored attachment blob."""
	try:
		return await get_blob(request, name)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
