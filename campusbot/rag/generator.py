"""Answer generation against the hosted model."""
import structlog

from campusbot import config
from campusbot.errors import GenerationError
from campusbot.llm_client import GeminiClient

logger = structlog.get_logger()

PROMPT_TEMPLATE = """You are the {short_name} ({name}) Campus Assistant, a helpful AI designed to assist students, faculty, and visitors with information about {short_name}.

Key points about your role:
1. Be professional, friendly, and concise
2. Focus on providing accurate information about {name}
3. If you're not sure about something, admit it and suggest contacting the relevant department
4. For questions about courses, admissions, or departments, provide official contact information
5. Maintain a helpful and encouraging tone

Based on this context: "{context}"

Question: "{question}"

Provide a clear, helpful response focusing on {short_name}-specific information. If the context doesn't contain enough information, say you don't have specific information about that aspect of {short_name} and suggest where they might find the information."""


def fallback_message(name: str = None, website: str = None) -> str:
    """Canned answer used when retrieval finds nothing."""
    name = name or config.INSTITUTION_NAME
    website = website or config.INSTITUTION_WEBSITE
    return (
        f"I don't have specific information about that aspect of {name}. "
        f"I recommend checking the official website ({website}) or contacting "
        f"the relevant department for the most accurate information."
    )


FALLBACK_MESSAGE = fallback_message()


class AnswerGenerator:
    """Builds the campus-assistant prompt and asks the model to answer."""

    def __init__(
        self,
        client: GeminiClient,
        institution_name: str = None,
        short_name: str = None,
    ):
        self.client = client
        self.institution_name = institution_name or config.INSTITUTION_NAME
        self.short_name = short_name or config.INSTITUTION_SHORT_NAME

    def build_prompt(self, question: str, context: str) -> str:
        return PROMPT_TEMPLATE.format(
            name=self.institution_name,
            short_name=self.short_name,
            context=context,
            question=question,
        )

    async def generate(self, question: str, context: str) -> str:
        """Answer a question from the assembled context.

        Returns:
            The model's text, verbatim

        Raises:
            GenerationError: On any client failure or an empty response
        """
        prompt = self.build_prompt(question, context)

        logger.info(
            "generation_started",
            question_length=len(question),
            context_length=len(context),
        )

        try:
            answer = await self.client.generate(prompt)
        except Exception as e:
            logger.error("generation_failed", error=str(e), error_type=type(e).__name__)
            raise GenerationError("Answer generation failed") from e

        logger.info("generation_completed", answer_length=len(answer))
        return answer
