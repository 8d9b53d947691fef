from __future__ import annotations

import asyncio
import unittest

from models.processed_file import AttachmentKind, ProcessedFile
from models.session_models import Message, Phase, Role, SessionState
from services.interview.orchestrator import (
    APOLOGY_MESSAGE,
    REGENERATE_HINT_MESSAGE,
    SPEC_GENERATED_MESSAGE,
    InterviewOrchestrator,
    clean_final_spec,
    modification_reply,
)
from services.interview.session_manager import SessionManager
from services.openai.prompts import final_spec_request
from tests.helpers.fakes import VALID_REPLY, FailingChat, FakeBlobStore, FakeChat, FakeSessionDAL, FakeSummarizer
from tests.helpers.samples import png_bytes
from utils.media_validation import to_image_data_url

GARBAGE = "Lorem ipsum dolor sit amet consectetur adipiscing elit sed do eiusmod tempor incididunt ut labore et dolore magna aliqua"
SPEC_BODY = (
    "# Projet Réservation\n\n"
    "Le projet est une application de réservation pour les clubs de sport et leurs membres."
)
FINAL_REPLY = "[SPEC_COMPLETE]\n[AUDIO] Voici le document. [/AUDIO]\nVoici le document final pour toi.\n" + SPEC_BODY


async def make_orchestrator(chat, state=None, blob_store=None, summarizer=None):
    dal = FakeSessionDAL(stored=state)
    session = await SessionManager.load_or_create("u1", dal, debounce=0.01)
    return InterviewOrchestrator(session, chat, blob_store, summarizer), dal


def spec_state(**overrides):
    values = dict(
        user_id="u1",
        messages=[
            Message(role=Role.ASSISTANT, display_content="Salut", structured_content="Salut"),
            Message(
                role=Role.ASSISTANT,
                display_content=SPEC_GENERATED_MESSAGE,
                structured_content=SPEC_GENERATED_MESSAGE,
                synthetic=True,
            ),
        ],
        phase=Phase.INTERVIEW,
        question_count=4,
        final_spec="# Ancienne version",
        is_modification_mode=True,
    )
    values.update(overrides)
    return SessionState(**values)


class CleanFinalSpecTests(unittest.TestCase):
    def test_marker_summary_and_preamble_are_removed(self):
        self.assertEqual(clean_final_spec(FINAL_REPLY), SPEC_BODY)

    def test_without_heading_keeps_everything(self):
        self.assertEqual(clean_final_spec("[SPEC_COMPLETE] Texte simple"), "Texte simple")


class ModificationReplyTests(unittest.TestCase):
    def test_preamble_is_kept(self):
        reply = "[AUDIO]C'est noté.[/AUDIO]\nC'est noté, j'ajoute le paiement.\n[SPEC_COMPLETE]\n# Doc"
        self.assertEqual(modification_reply(reply), "[AUDIO]C'est noté.[/AUDIO]\nC'est noté, j'ajoute le paiement.")

    def test_spoken_summary_alone_is_replaced_by_hint(self):
        reply = "[AUDIO]Je mets à jour le document.[/AUDIO]\n[SPEC_COMPLETE]\n# Doc"
        self.assertEqual(modification_reply(reply), REGENERATE_HINT_MESSAGE)


class SendTests(unittest.IsolatedAsyncioTestCase):
    async def asyncTearDown(self):
        await asyncio.sleep(0.03)

    async def test_successful_turn(self):
        chat = FakeChat()
        orchestrator, _ = await make_orchestrator(chat)

        self.assertTrue(await orchestrator.send("Je veux une appli de réservation"))

        messages = orchestrator.session.state.messages
        self.assertEqual([m.role for m in messages], [Role.ASSISTANT, Role.USER, Role.ASSISTANT])
        self.assertEqual(messages[1].structured_content, "Je veux une appli de réservation")
        self.assertEqual(messages[2].display_content, VALID_REPLY)
        self.assertEqual(orchestrator.session.state.question_count, 1)
        self.assertFalse(orchestrator.is_loading)

        history = chat.calls[0]
        self.assertEqual(history[0]["role"], "system")
        self.assertEqual(history[-1], {"role": "user", "content": "Je veux une appli de réservation"})

    async def test_empty_send_is_a_no_op(self):
        chat = FakeChat()
        orchestrator, _ = await make_orchestrator(chat)
        self.assertFalse(await orchestrator.send("   "))
        self.assertEqual(chat.calls, [])
        self.assertEqual(len(orchestrator.session.state.messages), 1)

    async def test_completion_marker_finalizes(self):
        orchestrator, dal = await make_orchestrator(FakeChat([FINAL_REPLY]))

        self.assertTrue(await orchestrator.send("Oui, génère le document"))

        state = orchestrator.session.state
        self.assertEqual(state.phase, Phase.COMPLETE)
        self.assertEqual(state.final_spec, SPEC_BODY)
        self.assertTrue(state.messages[-1].synthetic)
        self.assertEqual(state.spec_message_count, len(state.messages))
        self.assertEqual(state.question_count, 0)
        self.assertEqual(dal.rows["u1"].final_spec, SPEC_BODY)

    async def test_marker_is_noise_in_modification_mode(self):
        reply = "Merci pour la précision, je mets à jour le document.\n[SPEC_COMPLETE]\n# Nouveau"
        orchestrator, _ = await make_orchestrator(FakeChat([reply]), state=spec_state())

        self.assertTrue(await orchestrator.send("Ajoute un module de paiement"))

        state = orchestrator.session.state
        self.assertEqual(state.final_spec, "# Ancienne version")
        self.assertEqual(state.phase, Phase.INTERVIEW)
        self.assertEqual(state.messages[-1].display_content, "Merci pour la précision, je mets à jour le document.")

    async def test_marker_without_preamble_in_modification_mode(self):
        reply = "[SPEC_COMPLETE]\n# Nouveau\n\nLe projet est une application pour les clubs et leurs membres de sport."
        orchestrator, _ = await make_orchestrator(FakeChat([reply]), state=spec_state())
        await orchestrator.send("Encore une précision")
        self.assertEqual(orchestrator.session.state.messages[-1].display_content, REGENERATE_HINT_MESSAGE)

    async def test_invalid_after_retries_appends_apology(self):
        chat = FakeChat([GARBAGE])
        orchestrator, _ = await make_orchestrator(chat)

        self.assertFalse(await orchestrator.send("Bonjour"))

        self.assertEqual(len(chat.calls), 3)
        state = orchestrator.session.state
        self.assertEqual(state.messages[-1].display_content, APOLOGY_MESSAGE)
        self.assertEqual(state.question_count, 0)

    async def test_provider_error_is_shown(self):
        orchestrator, _ = await make_orchestrator(FailingChat("Service Unavailable"))
        self.assertFalse(await orchestrator.send("Bonjour"))
        self.assertEqual(orchestrator.session.state.messages[-1].display_content, "❌ Erreur: Service Unavailable")
        self.assertFalse(orchestrator.is_loading)

    async def test_abort_is_silent(self):
        chat = FakeChat()
        chat.gate = asyncio.Event()
        orchestrator, _ = await make_orchestrator(chat)

        task = asyncio.create_task(orchestrator.send("Bonjour"))
        for _ in range(50):
            await asyncio.sleep(0)
            if chat.calls:
                break
        self.assertTrue(orchestrator.is_loading)
        self.assertTrue(orchestrator.abort())
        self.assertFalse(orchestrator.is_loading)

        self.assertFalse(await task)
        roles = [m.role for m in orchestrator.session.state.messages]
        self.assertEqual(roles, [Role.ASSISTANT, Role.USER])
        self.assertIsNone(orchestrator.last_error)

    async def test_abort_during_attachment_summary(self):
        chat = FakeChat()
        summarizer = FakeSummarizer()
        summarizer.gate = asyncio.Event()
        orchestrator, _ = await make_orchestrator(chat, summarizer=summarizer)
        attachments = [ProcessedFile(kind=AttachmentKind.TEXT, name="cdc.txt", content="[File: cdc.txt]\n\nBesoins")]

        task = asyncio.create_task(orchestrator.send("Voici", attachments))
        for _ in range(50):
            await asyncio.sleep(0)
            if summarizer.calls:
                break
        self.assertTrue(orchestrator.abort())

        self.assertFalse(await task)
        self.assertEqual(chat.calls, [])
        self.assertEqual(len(orchestrator.session.state.messages), 1)
        self.assertIsNone(orchestrator.last_error)

    async def test_abort_without_request(self):
        orchestrator, _ = await make_orchestrator(FakeChat())
        self.assertFalse(orchestrator.abort())

    async def test_attachments_build_multipart_turn(self):
        blob_store = FakeBlobStore()
        summarizer = FakeSummarizer()
        orchestrator, _ = await make_orchestrator(FakeChat(), blob_store=blob_store, summarizer=summarizer)
        attachments = [
            ProcessedFile(kind=AttachmentKind.TEXT, name="cdc.txt", content="[File: cdc.txt]\n\nBesoins"),
            ProcessedFile(kind=AttachmentKind.IMAGE, name="m.png", content=to_image_data_url(png_bytes(), "image/png")),
        ]

        self.assertTrue(await orchestrator.send("Voici mes documents", attachments))

        user_turn = orchestrator.session.state.messages[1]
        parts = user_turn.structured_content
        self.assertEqual(parts[0]["type"], "text")
        self.assertIn("--- cdc.txt ---\n[File: cdc.txt]\n\nBesoins", parts[0]["text"])
        self.assertEqual(parts[1]["image_url"]["url"], list(blob_store.blobs)[0])
        self.assertIn("[Fichier: Cahier des charges application mobile]", user_turn.display_content)
        self.assertIn("[Image: m.png]", user_turn.display_content)

    async def test_upload_failure_falls_back_to_inline_image(self):
        inline = to_image_data_url(png_bytes(), "image/png")
        orchestrator, dal = await make_orchestrator(FakeChat(), blob_store=FakeBlobStore(fail_put=True))
        attachments = [ProcessedFile(kind=AttachmentKind.IMAGE, name="m.png", content=inline)]

        self.assertTrue(await orchestrator.send("", attachments))

        parts = orchestrator.session.state.messages[1].structured_content
        self.assertEqual(parts, [{"type": "image_url", "image_url": {"url": inline}}])


class GenerateSpecTests(unittest.IsolatedAsyncioTestCase):
    async def test_generate_replaces_previous_confirmation(self):
        chat = FakeChat([FINAL_REPLY])
        orchestrator, dal = await make_orchestrator(chat, state=spec_state())

        self.assertTrue(await orchestrator.generate_spec())

        state = orchestrator.session.state
        self.assertEqual(state.final_spec, SPEC_BODY)
        self.assertEqual(state.phase, Phase.COMPLETE)
        self.assertFalse(state.is_modification_mode)
        self.assertEqual(sum(1 for m in state.messages if m.synthetic), 1)
        self.assertTrue(state.messages[-1].synthetic)
        self.assertEqual(chat.calls[0][-1], {"role": "user", "content": final_spec_request()})
        self.assertNotIn(final_spec_request(), [m.display_content for m in state.messages])
        self.assertEqual(dal.rows["u1"].final_spec, SPEC_BODY)

    async def test_invalid_generation_keeps_previous_spec(self):
        orchestrator, _ = await make_orchestrator(FakeChat([GARBAGE]), state=spec_state())
        self.assertFalse(await orchestrator.generate_spec())
        self.assertEqual(orchestrator.session.state.final_spec, "# Ancienne version")
        self.assertIsNotNone(orchestrator.last_error)


class PhaseTests(unittest.IsolatedAsyncioTestCase):
    async def test_generate_affordance_after_three_questions(self):
        orchestrator, _ = await make_orchestrator(FakeChat())
        for answer in ("un", "deux"):
            await orchestrator.send(answer)
        self.assertFalse(orchestrator.can_generate_spec)
        await orchestrator.send("trois")
        self.assertTrue(orchestrator.can_generate_spec)
        await orchestrator.session.flush()

    async def test_back_to_interview_enables_modification_mode(self):
        state = spec_state(phase=Phase.COMPLETE, is_modification_mode=False)
        orchestrator, _ = await make_orchestrator(FakeChat(), state=state)
        orchestrator.back_to_interview()
        self.assertEqual(orchestrator.session.state.phase, Phase.INTERVIEW)
        self.assertTrue(orchestrator.session.state.is_modification_mode)
        await orchestrator.session.flush()

    async def test_back_to_interview_without_spec(self):
        orchestrator, _ = await make_orchestrator(FakeChat())
        orchestrator.back_to_interview()
        self.assertFalse(orchestrator.session.state.is_modification_mode)
        await orchestrator.session.flush()


if __name__ == "__main__":
    unittest.main()
