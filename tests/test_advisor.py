from openai import OpenAIError

from agroloop.services.advisor import (
    DEFAULT_REPLY,
    MAX_HISTORY,
    SYSTEM_PROMPT,
    ConversationalAdvisoryClient,
    local_reply,
)
from agroloop.services.ai_config import AIConfig
from agroloop.services.outcomes import Ok, VendorError, VendorUnavailable
from conftest import FakeOpenAI

WITH_KEY = AIConfig(openai_api_key="sk-test")


def test_root_rot_question_answered_locally_without_key():
    advisor = ConversationalAdvisoryClient(AIConfig())

    reply = advisor.ask("How do I treat root rot?")

    assert reply.confidence == 0.8
    assert isinstance(reply.outcome, VendorUnavailable)
    assert "root rot" in reply.message
    assert "drainage" in reply.message


def test_vendor_reply_uses_full_history():
    openai = FakeOpenAI(reply="  Use mulch.  ")
    advisor = ConversationalAdvisoryClient(WITH_KEY, client_factory=openai, model="gpt-test")

    reply = advisor.ask("How do I keep soil moist?")

    assert reply.message == "Use mulch."
    assert reply.confidence == 0.95
    assert isinstance(reply.outcome, Ok)
    call = openai.calls[0]
    assert call["model"] == "gpt-test"
    assert call["messages"] == [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": "How do I keep soil moist?"},
    ]
    assert openai.api_key == "sk-test"
    assert advisor.history[-1] == {"role": "assistant", "content": "Use mulch."}


def test_vendor_error_falls_back_to_knowledge_base():
    advisor = ConversationalAdvisoryClient(WITH_KEY, client_factory=FakeOpenAI(error=OpenAIError("quota exceeded")))

    reply = advisor.ask("Which fertilizer for wheat?")

    assert reply.confidence == 0.8
    assert isinstance(reply.outcome, VendorError)
    assert "quota exceeded" in reply.outcome.reason
    assert "NPK" in reply.message


def test_unexpected_vendor_payload_takes_exception_path():
    def broken_factory(api_key=None, timeout=None):
        return object()

    advisor = ConversationalAdvisoryClient(WITH_KEY, client_factory=broken_factory)

    reply = advisor.ask("Any pest tips?")
    assert reply.confidence == 0.7
    assert "pest" in reply.message
    assert advisor.history == [{"role": "system", "content": SYSTEM_PROMPT}]


def test_history_keeps_system_prompt_and_last_ten_messages():
    advisor = ConversationalAdvisoryClient(WITH_KEY, client_factory=FakeOpenAI())
    for i in range(8):
        advisor.ask(f"question {i}")

    history = advisor.history
    assert len(history) == MAX_HISTORY + 1
    assert history[0]["role"] == "system"
    assert history[-2] == {"role": "user", "content": "question 7"}
    assert history[1] == {"role": "user", "content": "question 3"}


def test_clear_resets_to_system_prompt():
    advisor = ConversationalAdvisoryClient(AIConfig())
    advisor.ask("hello")
    advisor.clear()

    assert advisor.history == [{"role": "system", "content": SYSTEM_PROMPT}]


def test_history_property_is_a_copy():
    advisor = ConversationalAdvisoryClient(AIConfig())
    advisor.history.append({"role": "user", "content": "sneaky"})

    assert len(advisor.history) == 1


def test_keyword_buckets():
    assert "drip irrigation" in local_reply("When should I water my field?")
    assert "neem oil" in local_reply("Natural ways to stop aphids?")
    assert "pH between 6.0-7.0" in local_reply("My soil is too acidic")
    assert "frost" in local_reply("Will frost hurt seedlings?")
    assert "Harvest timing" in local_reply("When to harvest onions")
    assert "Rotate crops" in local_reply("Tell me about crop rotation")
    assert local_reply("hello there") == DEFAULT_REPLY


def test_connection_probe():
    assert ConversationalAdvisoryClient(WITH_KEY, client_factory=FakeOpenAI()).test_connection() is True
    assert ConversationalAdvisoryClient(AIConfig()).test_connection() is False
