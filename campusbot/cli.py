"""Interactive command-line chat.

Usage:
    python -m campusbot.cli              # Remembers the conversation
    python -m campusbot.cli --stateless  # Every question stands alone
"""
import argparse
import asyncio
import sys
from typing import Awaitable, Callable, Optional

import structlog

from campusbot.errors import CampusBotError, GenerationError
from campusbot.logging_setup import configure_logging
from campusbot.models import ConversationState
from campusbot.rag.pipeline import AnswerPipeline, build_pipeline

logger = structlog.get_logger()

PROMPT = "Ask a question (type 'exit' to quit): "
EXIT_COMMAND = "exit"
GENERATION_FAILED_MESSAGE = "Sorry, I couldn't answer that right now. Please try again."

InputFn = Callable[[str], Awaitable[str]]
OutputFn = Callable[[str], None]


async def _read_line(prompt: str) -> str:
    # input() blocks, so keep it off the event loop
    return await asyncio.to_thread(input, prompt)


def is_exit(line: str) -> bool:
    return line.strip().lower() == EXIT_COMMAND


def format_history(state: ConversationState) -> str:
    lines = ["Conversation History:"]
    for turn in state.history:
        lines.append(f"Human: {turn.question}")
        lines.append(f"AI: {turn.answer}\n")
    return "\n".join(lines)


async def run_chat_loop(
    pipeline: AnswerPipeline,
    stateful: bool = True,
    input_fn: Optional[InputFn] = None,
    output_fn: Optional[OutputFn] = None,
) -> ConversationState:
    """Read questions until "exit" (any case) or end of input.

    A failed generation is reported and the loop carries on with the
    history it had before the failed turn.

    Returns:
        The final conversation state (empty in stateless mode)
    """
    input_fn = input_fn or _read_line
    output_fn = output_fn or print
    state = ConversationState()

    output_fn("Chatbot initialized")

    while True:
        try:
            line = await input_fn(PROMPT)
        except EOFError:
            break

        if is_exit(line):
            break

        question = line.strip()
        if not question:
            continue

        try:
            result = await pipeline.answer(question, state=state if stateful else None)
        except GenerationError as e:
            logger.error("cli_turn_failed", error=str(e))
            output_fn(GENERATION_FAILED_MESSAGE)
            continue

        if stateful and result.state is not None:
            state = result.state

        output_fn(f"AI: {result.answer}\n")

    if stateful and state.history:
        output_fn(format_history(state))

    output_fn("Chatbot session ended.")
    return state


async def _run(stateful: bool) -> None:
    pipeline = build_pipeline()
    await pipeline.retriever.load()
    await run_chat_loop(pipeline, stateful=stateful)


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Chat with the campus assistant")
    parser.add_argument(
        "--stateless",
        action="store_true",
        help="Answer each question independently (no conversation history)",
    )
    parser.add_argument("--log-level", default=None, help="Log level (default from LOG_LEVEL)")
    args = parser.parse_args(argv)

    configure_logging(args.log_level, json_output=False)

    try:
        asyncio.run(_run(stateful=not args.stateless))
    except KeyboardInterrupt:
        print("\nChatbot session ended.")
    except CampusBotError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
