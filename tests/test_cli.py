"""Tests for the interactive chat loop."""
from campusbot.cli import GENERATION_FAILED_MESSAGE, format_history, is_exit, run_chat_loop
from campusbot.models import ConversationState
from campusbot.rag.pipeline import AnswerPipeline
from campusbot.rag.reranker import KeywordReranker

from conftest import FakeGenerator, FakeRetriever, make_history, make_result


class ScriptedInput:
    """Feeds canned lines to the loop, then signals end of input."""

    def __init__(self, *lines):
        self.lines = list(lines)

    async def __call__(self, prompt):
        if not self.lines:
            raise EOFError
        return self.lines.pop(0)


def make_pipeline(retriever=None, generator=None):
    return AnswerPipeline(
        retriever=retriever or FakeRetriever([make_result("Dr. X is the Principal of MITS.")]),
        reranker=KeywordReranker(),
        generator=generator or FakeGenerator(answer="Dr. X."),
        fallback_message="No information available.",
    )


def test_is_exit_ignores_case_and_whitespace():
    assert is_exit("EXIT")
    assert is_exit("  exit \n")
    assert not is_exit("exit now")


async def test_exit_ends_session_without_retrieval():
    retriever = FakeRetriever()
    output = []

    state = await run_chat_loop(make_pipeline(retriever=retriever), input_fn=ScriptedInput("EXIT"),
                                output_fn=output.append)

    assert retriever.calls == []
    assert len(state) == 0
    assert output == ["Chatbot initialized", "Chatbot session ended."]


async def test_stateful_session_grows_history():
    retriever = FakeRetriever([make_result("Dr. X is the Principal of MITS.")])
    output = []

    state = await run_chat_loop(
        make_pipeline(retriever=retriever),
        input_fn=ScriptedInput("Who is the principal?", "", "What is their email?", "exit"),
        output_fn=output.append,
    )

    assert len(state) == 2
    assert [turn.question for turn in state.history] == ["Who is the principal?", "What is their email?"]
    # The second question sees the first turn
    assert retriever.calls[1]["history"] == make_history(("Who is the principal?", "Dr. X."))
    assert "AI: Dr. X.\n" in output
    assert output[-2].startswith("Conversation History:")
    assert output[-1] == "Chatbot session ended."


async def test_stateless_session_sends_no_history():
    retriever = FakeRetriever([make_result("Dr. X is the Principal of MITS.")])

    state = await run_chat_loop(
        make_pipeline(retriever=retriever),
        stateful=False,
        input_fn=ScriptedInput("Who is the principal?", "And the dean?"),
        output_fn=lambda line: None,
    )

    assert [call["history"] for call in retriever.calls] == [(), ()]
    assert len(state) == 0


async def test_generation_failure_keeps_loop_and_history():
    output = []

    state = await run_chat_loop(
        make_pipeline(generator=FakeGenerator(fail=True)),
        input_fn=ScriptedInput("Who is the principal?", "exit"),
        output_fn=output.append,
    )

    assert GENERATION_FAILED_MESSAGE in output
    assert len(state) == 0
    assert output[-1] == "Chatbot session ended."


async def test_end_of_input_ends_session():
    output = []
    await run_chat_loop(make_pipeline(), input_fn=ScriptedInput(), output_fn=output.append)
    assert output[-1] == "Chatbot session ended."


def test_format_history():
    text = format_history(ConversationState(history=make_history(("q1", "a1"))))
    assert text == "Conversation History:\nHuman: q1\nAI: a1\n"
