from fastapi import HTTPException, Request
from fastapi.responses import Response

from services.openai.speech_service import SpeechSynthesizer


async def synthesize_speech(request: Request, text: str) -> Response:
    """Return MP3 audio of the spoken summary of `text`.

    Raises:
        HTTPException(400) if nothing speakable remains after preparation.
    """
    synthesizer: SpeechSynthesizer = request.app.state.speech_synthesizer
    try:
        audio = await synthesizer.synthesize(text)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return Response(content=audio, media_type="audio/mpeg")
