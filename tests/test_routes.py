from __future__ import annotations

import os
import tempfile
import unittest
from unittest import mock

from fastapi.testclient import TestClient

from main import create_app
from models.session_models import Message, Phase, Role, SessionState
from services.ingestion.file_pipeline import FilePipeline
from services.interview.session_store import SessionStore
from tests.helpers.fakes import FakeBlobStore, FakeChat, FakeSessionDAL, FakeSummarizer
from tests.helpers.samples import jpeg_bytes, png_bytes

USER = {"X-User-Id": "alice"}
SPEC = "# Projet Réservation\n\nApplication de **réservation** pour les clubs."


class FakeSynthesizer:
    async def synthesize(self, text):
        if not text.strip():
            raise ValueError("Nothing to synthesize")
        return b"ID3fake"


def completed_state(user_id="alice"):
    return SessionState(
        user_id=user_id,
        messages=[
            Message(role=Role.ASSISTANT, display_content="Salut", structured_content="Salut"),
            Message(role=Role.USER, display_content="Une appli", structured_content="Une appli"),
            Message(role=Role.ASSISTANT, display_content=SPEC, structured_content=SPEC, synthetic=True),
        ],
        phase=Phase.COMPLETE,
        final_spec=SPEC,
        spec_message_count=3,
    )


class RouteTestCase(unittest.TestCase):
    """Runs the real lifespan, then swaps the session registry for in-memory fakes."""

    stored_state = None
    fail_load = False

    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        env = mock.patch.dict(
            os.environ,
            {"OPENAI_API_KEY": "test-key", "DATABASE_DIR": tmp.name, "BLOB_DIR": os.path.join(tmp.name, "blobs")},
        )
        env.start()
        self.addCleanup(env.stop)

        self.app = create_app()
        client = TestClient(self.app)
        self.client = client.__enter__()
        self.addCleanup(client.__exit__, None, None, None)

        self.dal = FakeSessionDAL(stored=self.stored_state, fail_load=self.fail_load)
        self.chat = FakeChat()
        self.app.state.session_store = SessionStore(
            dal=self.dal,
            chat=self.chat,
            blob_store=FakeBlobStore(),
            summarizer=FakeSummarizer(),
            pipeline_factory=lambda: FilePipeline(max_text_size=500),
            debounce=0.01,
        )
        self.app.state.speech_synthesizer = FakeSynthesizer()


class HealthAndIdentityTests(RouteTestCase):
    def test_health(self):
        body = self.client.get("/health").json()
        self.assertTrue(body["ok"])
        self.assertTrue(body["db_initialized"])
        self.assertTrue(body["openai_available"])
        self.assertTrue(body["blob_store_available"])

    def test_missing_user_header_is_rejected(self):
        self.assertEqual(self.client.get("/session").status_code, 401)

    def test_new_session_starts_with_welcome(self):
        body = self.client.get("/session", headers=USER).json()
        self.assertEqual(body["user_id"], "alice")
        self.assertEqual(body["state"], "interview")
        self.assertEqual(len(body["messages"]), 1)
        self.assertEqual(body["messages"][0]["role"], "assistant")
        self.assertFalse(body["can_generate_spec"])
        self.assertIsNone(body["staged_file"])


class LoadFailureTests(RouteTestCase):
    fail_load = True

    def test_load_failure_reports_connection_error(self):
        response = self.client.get("/session", headers=USER)
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()["detail"]["state"], "connection_error")


class ChatRouteTests(RouteTestCase):
    def test_send_message(self):
        body = self.client.post("/chat/messages", headers=USER, json={"text": "Une appli de réservation"}).json()
        self.assertTrue(body["ok"])
        session = body["session"]
        self.assertEqual([m["role"] for m in session["messages"]], ["assistant", "user", "assistant"])
        self.assertEqual(session["question_count"], 1)
        self.assertFalse(session["is_loading"])

    def test_empty_message_is_rejected(self):
        response = self.client.post("/chat/messages", headers=USER, json={"text": "  "})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.chat.calls, [])

    def test_abort_without_request(self):
        body = self.client.post("/chat/abort", headers=USER).json()
        self.assertFalse(body["aborted"])

    def test_reset_restores_welcome(self):
        self.client.post("/chat/messages", headers=USER, json={"text": "Bonjour"})
        body = self.client.post("/session/reset", headers=USER).json()
        self.assertEqual(len(body["messages"]), 1)
        self.assertEqual(body["question_count"], 0)
        self.assertEqual(body["deleted_blobs"], 0)


class FileRouteTests(RouteTestCase):
    def test_text_file_is_attached_to_next_message(self):
        response = self.client.post(
            "/files",
            headers=USER,
            files=[("files", ("notes.txt", b"Besoins du client", "text/plain"))],
        )
        body = response.json()
        self.assertTrue(body["validation"]["accepted"])
        self.assertEqual(body["validation"]["file_kind"], "text")
        self.assertEqual(body["session"]["staged_file"]["name"], "notes.txt")

        sent = self.client.post("/chat/messages", headers=USER, json={"text": "Voici mes notes"}).json()
        user_turn = sent["session"]["messages"][1]["content"]
        self.assertIn("Voici mes notes", user_turn)
        self.assertIn("[Fichier: Cahier des charges application mobile]", user_turn)
        self.assertIsNone(sent["session"]["staged_file"])
        self.assertIn("--- notes.txt ---", self.chat.calls[0][-1]["content"])

    def test_image_alone_can_be_sent(self):
        self.client.post("/files", headers=USER, files=[("files", ("m.png", png_bytes(), "image/png"))])
        body = self.client.post("/chat/messages", headers=USER, json={"text": ""}).json()
        self.assertTrue(body["ok"])
        self.assertIn("[Image: m.png]", body["session"]["messages"][1]["content"])

    def test_unreadable_image_is_staged_as_placeholder(self):
        data = jpeg_bytes(2000, 1600)
        response = self.client.post(
            "/files",
            headers=USER,
            files=[("files", ("photo.jpg", data[: len(data) // 2], "image/jpeg"))],
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["session"]["staged_file"]["kind"], "text")

    def test_long_file_waits_for_confirmation(self):
        upload = self.client.post(
            "/files",
            headers=USER,
            files=[("files", ("long.txt", b"a" * 800, "text/plain"))],
        ).json()
        self.assertTrue(upload["validation"]["needs_confirmation"])
        self.assertEqual(upload["validation"]["confirmation_kind"], "text_truncation")

        blocked = self.client.post("/chat/messages", headers=USER, json={"text": "Voici"})
        self.assertEqual(blocked.status_code, 409)

        confirmed = self.client.post("/files/confirm", headers=USER, json={"accept": True}).json()
        self.assertTrue(confirmed["accepted"])
        self.assertTrue(confirmed["was_truncated"])
        self.assertTrue(confirmed["session"]["staged_file"]["was_truncated"])

    def test_confirm_without_pending_file(self):
        response = self.client.post("/files/confirm", headers=USER, json={"accept": True})
        self.assertEqual(response.status_code, 404)

    def test_discard(self):
        self.client.post("/files", headers=USER, files=[("files", ("notes.txt", b"x", "text/plain"))])
        body = self.client.delete("/files", headers=USER).json()
        self.assertIsNone(body["session"]["staged_file"])


class ExportWithoutSpecTests(RouteTestCase):
    def test_no_spec_yet(self):
        self.assertEqual(self.client.get("/spec/html", headers=USER).status_code, 404)
        self.assertEqual(self.client.get("/spec/docx", headers=USER).status_code, 404)

    def test_render_escapes_markup(self):
        response = self.client.post("/render", json={"markdown": "# Titre\n\n<script>alert(1)</script>"})
        self.assertEqual(response.status_code, 200)
        self.assertIn("<h1", response.text)
        self.assertNotIn("<script>", response.text)

    def test_tts(self):
        response = self.client.post("/tts", json={"text": "[AUDIO]Bonjour[/AUDIO]"})
        self.assertEqual(response.headers["content-type"], "audio/mpeg")
        self.assertEqual(response.content, b"ID3fake")
        self.assertEqual(self.client.post("/tts", json={"text": " "}).status_code, 400)


class ExportWithSpecTests(RouteTestCase):
    stored_state = completed_state()

    def test_spec_html(self):
        response = self.client.get("/spec/html", headers=USER)
        self.assertEqual(response.status_code, 200)
        self.assertIn("<h1", response.text)
        self.assertIn("réservation", response.text)

    def test_single_message_view(self):
        self.assertEqual(self.client.get("/spec/html?source=0", headers=USER).status_code, 200)
        self.assertEqual(self.client.get("/spec/html?source=1", headers=USER).status_code, 400)
        self.assertEqual(self.client.get("/spec/html?source=9", headers=USER).status_code, 404)

    def test_spec_docx_download(self):
        response = self.client.get("/spec/docx", headers=USER)
        self.assertEqual(response.status_code, 200)
        self.assertIn('filename="specifications.docx"', response.headers["content-disposition"])
        self.assertTrue(response.content.startswith(b"PK"))

    def test_back_to_interview(self):
        body = self.client.post("/session/back-to-interview", headers=USER).json()
        self.assertEqual(body["state"], "interview")
        self.assertTrue(body["is_modification_mode"])
        self.assertEqual(body["final_spec"], SPEC)


class StorageRouteTests(RouteTestCase):
    def test_serves_stored_blob(self):
        root = self.app.state.blob_store.root_dir
        (root / "abc123.png").write_bytes(png_bytes())
        response = self.client.get("/storage/blobs/abc123.png")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.headers["content-type"], "image/png")

    def test_missing_blob(self):
        self.assertEqual(self.client.get("/storage/blobs/missing.jpg").status_code, 404)

    def test_unsafe_name_is_rejected(self):
        self.assertEqual(self.client.get("/storage/blobs/app.db;rm").status_code, 400)


if __name__ == "__main__":
    unittest.main()
