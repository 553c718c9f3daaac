import os
import tempfile
import unittest

from yuka.llm.context import build_messages
from yuka.llm.dispatch import Completion, DispatchEngine
from yuka.llm.errors import LLMConnectionError, LLMRateLimitError, LLMUpstreamError
from yuka.llm.selector import ModelSelector
from yuka.storage import ConversationStore, ConversationTurn, UsageLedger, open_database, utcnow

SYSTEM_PROMPT = "You are Yuka."


def rate_limited():
    return LLMRateLimitError("429 Too Many Requests", 429)


class ScriptedBackend:
    """Plays back a list of outcomes per model; exceptions are raised."""

    def __init__(self, script):
        self.script = {model: list(outcomes) for model, outcomes in script.items()}
        self.calls = []
        self.messages = []
        self.credentials = []

    async def complete(self, model, messages, credential):
        self.calls.append(model)
        self.messages.append(messages)
        self.credentials.append(credential)
        outcome = self.script[model].pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class DispatchTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.conn = await open_database(os.path.join(self._tmp.name, "dispatch.db"))
        self.ledger = UsageLedger(self.conn)
        self.store = ConversationStore(self.conn, max_response_chars=100)
        self.selector = ModelSelector(["A", "B", "C"], self.ledger)
        self.sleeps = []

    async def asyncTearDown(self):
        await self.conn.close()
        self._tmp.cleanup()

    async def record_sleep(self, seconds):
        self.sleeps.append(seconds)

    def make_engine(self, backend, **kwargs):
        return DispatchEngine(
            backend,
            self.selector,
            self.ledger,
            self.store,
            system_prompt=SYSTEM_PROMPT,
            sleep=self.record_sleep,
            **kwargs,
        )

    async def ledger_counts(self):
        return {s.model: (s.successes, s.total) for s in await self.ledger.stats()}


class TestAttemptLoop(DispatchTestCase):
    async def test_first_success_stops_iteration(self):
        backend = ScriptedBackend({"A": ["answer from A"], "B": ["unused"]})
        engine = self.make_engine(backend)

        result = await engine.dispatch("hello", "u1", "key-1", ordering=["A", "B"])

        self.assertEqual(result, Completion(content="answer from A", model="A"))
        self.assertEqual(backend.calls, ["A"])
        self.assertEqual(backend.credentials, ["key-1"])
        self.assertEqual(await self.ledger_counts(), {"A": (1, 1)})

    async def test_backoff_sequence_under_repeated_rate_limits(self):
        backend = ScriptedBackend({"A": [rate_limited() for _ in range(4)], "B": ["fine"]})
        engine = self.make_engine(backend)

        result = await engine.dispatch("hello", "u1", "key", ordering=["A", "B"])

        self.assertEqual(self.sleeps, [2.0, 4.0, 8.0])
        self.assertEqual(backend.calls, ["A", "A", "A", "A", "B"])
        self.assertEqual(result.model, "B")
        self.assertEqual(result.content, "fine")
        # exhaustion by rate limiting leaves no trace in the ledger
        self.assertEqual(await self.ledger_counts(), {"B": (1, 1)})

    async def test_rate_limit_then_success_on_same_model(self):
        backend = ScriptedBackend({"A": [rate_limited(), "second try"]})
        engine = self.make_engine(backend)

        result = await engine.dispatch("hello", "u1", "key", ordering=["A"])

        self.assertEqual(result, Completion("second try", "A"))
        self.assertEqual(self.sleeps, [2.0])
        self.assertEqual(await self.ledger_counts(), {"A": (1, 1)})

    async def test_hard_error_records_one_failure_and_no_retry(self):
        backend = ScriptedBackend({"A": [LLMUpstreamError("boom", 500)], "B": ["ok"]})
        engine = self.make_engine(backend)

        result = await engine.dispatch("hello", "u1", "key", ordering=["A", "B"])

        self.assertEqual(backend.calls, ["A", "B"])
        self.assertEqual(self.sleeps, [])
        self.assertEqual(result.model, "B")
        self.assertEqual(await self.ledger_counts(), {"A": (0, 1), "B": (1, 1)})

    async def test_all_models_exhausted_returns_none(self):
        backend = ScriptedBackend({
            "A": [LLMConnectionError("down")],
            "B": [rate_limited() for _ in range(4)],
        })
        engine = self.make_engine(backend)

        result = await engine.dispatch("hello", "u1", "key", ordering=["A", "B"])

        self.assertIsNone(result)
        self.assertEqual(await self.ledger_counts(), {"A": (0, 1)})
        self.assertEqual(await self.store.recent_turns("u1", 5), [])

    async def test_default_ordering_comes_from_selector(self):
        await self.ledger.record("A", False)
        await self.selector.refresh()
        backend = ScriptedBackend({"B": ["from B"]})
        engine = self.make_engine(backend)

        result = await engine.dispatch("hello", "u1", "key")

        self.assertEqual(backend.calls, ["B"])
        self.assertEqual(result.model, "B")

    async def test_max_attempts_is_configurable(self):
        backend = ScriptedBackend({"A": [rate_limited(), rate_limited()], "B": ["ok"]})
        engine = self.make_engine(backend, max_attempts=2, initial_backoff_ms=500)

        await engine.dispatch("hello", "u1", "key", ordering=["A", "B"])

        self.assertEqual(self.sleeps, [0.5])
        self.assertEqual(backend.calls, ["A", "A", "B"])

    async def test_empty_prompt_rejected(self):
        engine = self.make_engine(ScriptedBackend({}))
        with self.assertRaises(ValueError):
            await engine.dispatch("   ", "u1", "key", ordering=["A"])


class TestPersistence(DispatchTestCase):
    async def test_success_is_stored_as_turn(self):
        engine = self.make_engine(ScriptedBackend({"A": ["short answer"]}))

        await engine.dispatch("question", "u1", "key", ordering=["A"])

        (turn,) = await self.store.recent_turns("u1", 5)
        self.assertEqual(turn.prompt, "question")
        self.assertEqual(turn.response, "short answer")
        self.assertEqual(turn.model, "A")

    async def test_oversized_result_returned_but_not_stored(self):
        long_answer = "x" * 101
        engine = self.make_engine(ScriptedBackend({"A": [long_answer]}))

        result = await engine.dispatch("question", "u1", "key", ordering=["A"])

        self.assertEqual(result.content, long_answer)
        self.assertEqual(await self.store.recent_turns("u1", 5), [])
        self.assertEqual(await self.ledger_counts(), {"A": (1, 1)})


class TestContext(DispatchTestCase):
    async def test_history_and_reply_turn_feed_the_context(self):
        for i in range(3):
            await self.store.append(
                ConversationTurn("u1", f"q{i}", f"a{i}", "A", utcnow())
            )
        await self.store.append(ConversationTurn("u2", "their q", "their answer", "B", utcnow()))

        backend = ScriptedBackend({"A": ["new answer"]})
        engine = self.make_engine(backend, history_count=2)

        await engine.dispatch("follow up", "u1", "key", ordering=["A"], reply_text="their answer")

        messages = backend.messages[0]
        self.assertEqual(messages[0], {"role": "system", "content": SYSTEM_PROMPT})
        self.assertEqual(
            [m["content"] for m in messages[1:]],
            ["q1", "a1", "q2", "a2", "their q", "their answer", "follow up"],
        )
        self.assertEqual(
            [m["role"] for m in messages[1:]],
            ["user", "assistant", "user", "assistant", "user", "assistant", "user"],
        )

    async def test_unknown_reply_text_is_ignored(self):
        backend = ScriptedBackend({"A": ["ok"]})
        engine = self.make_engine(backend)

        await engine.dispatch("hi", "u1", "key", ordering=["A"], reply_text="never said this")

        self.assertEqual(len(backend.messages[0]), 2)

    def test_build_messages_trims_history_not_prompt(self):
        turn = ConversationTurn("u1", "p" * 10 + "END", "r" * 10 + "TAIL", "A", utcnow())
        messages = build_messages("sys", [turn], "n" * 20, trim_chars=4)

        self.assertEqual(messages[1]["content"], "pEND")
        self.assertEqual(messages[2]["content"], "TAIL")
        self.assertEqual(messages[3]["content"], "n" * 20)


if __name__ == "__main__":
    unittest.main()
