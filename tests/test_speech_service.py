from __future__ import annotations

import unittest
from types import SimpleNamespace

from services.openai.speech_service import SpeechSynthesizer, clean_text_for_speech, extract_audio_summary, prepare_tts_text


class _Speech:
    def __init__(self):
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        return SimpleNamespace(content=b"ID3audio")


class PrepareTextTests(unittest.TestCase):
    def test_audio_summary_wins(self):
        text = "[audio]Super, **parlons** de tes utilisateurs ![/AUDIO]\n# Détails\nBeaucoup de texte."
        self.assertEqual(prepare_tts_text(text), "Super, parlons de tes utilisateurs !")

    def test_first_sentence_fallback(self):
        text = "## Question\nQui va utiliser ton application au quotidien ? Et pourquoi ?"
        self.assertEqual(prepare_tts_text(text), "Question Qui va utiliser ton application au quotidien ")

    def test_fallback_is_capped(self):
        self.assertEqual(len(prepare_tts_text("mot " * 200)), 200)

    def test_markdown_and_emoji_are_removed(self):
        self.assertEqual(clean_text_for_speech("Salut 👋 [site](https://x.y) `code`\n- item"), "Salut site code item")

    def test_no_summary(self):
        self.assertIsNone(extract_audio_summary("pas de balise"))
        self.assertIsNone(extract_audio_summary("[AUDIO]   [/AUDIO]"))


class SpeechSynthesizerTests(unittest.IsolatedAsyncioTestCase):
    async def test_synthesizes_prepared_text(self):
        speech = _Speech()
        client = SimpleNamespace(audio=SimpleNamespace(speech=speech))
        synthesizer = SpeechSynthesizer(client, model="tts-test", voice="alloy")

        audio = await synthesizer.synthesize("[AUDIO]Bonjour à toi[/AUDIO] et le reste")

        self.assertEqual(audio, b"ID3audio")
        self.assertEqual(speech.kwargs["input"], "Bonjour à toi")
        self.assertEqual(speech.kwargs["voice"], "alloy")

    async def test_empty_text_is_rejected(self):
        synthesizer = SpeechSynthesizer(SimpleNamespace(audio=SimpleNamespace(speech=_Speech())))
        with self.assertRaises(ValueError):
            await synthesizer.synthesize("   ")


if __name__ == "__main__":
    unittest.main()
