import mimetypes

from fastapi import HTTPException, Request
from fastapi.responses import Response

from services.storage.blob_store import BlobStoreError, LocalBlobStore


async def get_blob(request: Request, name: str) -> Response:
    """Controller to fetch the bytes of a stored attachment blob.

    Args:
        request: FastAPI Request (to access app.state.blob_store).
        name: Generated blob name, as found at the end of a storage URL.

    Returns:
        FastAPI `Response` with the raw bytes and a media type guessed from
        the blob's extension.

    Raises:
        HTTPException(400) if the name is not a plain blob name.
        HTTPException(404) if the blob does not exist.
    """
    blob_store: LocalBlobStore = request.app.state.blob_store
    try:
        data = await blob_store.read(name)
    except BlobStoreError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Blob not found") from exc

    media_type = mimetypes.guess_type(name)[0] or "application/octet-stream"
    return Response(content=data, media_type=media_type)
