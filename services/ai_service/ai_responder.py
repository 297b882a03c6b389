"""
AI responder - short group-chat replies for @mentions of the assistant.

complete() never raises: missing configuration, backend errors and an open
circuit all resolve to the configured apology text.
"""

from typing import Optional

from langchain_core.messages import HumanMessage

from config.app_config import get_config
from services.ai_service.llm_client import LLMClient, get_llm_client
from infrastructure.resilience.circuit_breaker import CircuitBreaker, CircuitBreakerError, get_ai_circuit_breaker
from utils.logging_config import get_logger, log_execution_time

PROMPT_TEMPLATE = """You are a helpful and funny chat bot in a group chat.
Context of recent chat:
{context}
User said: "{message}"
Keep your response short (under 2 sentences), engaging, and friendly."""


def build_prompt(message: str, context: str) -> str:
    return PROMPT_TEMPLATE.format(context=context, message=message)


class AIResponder:
    """
    Wraps the chat model behind a fail-soft completion call.
    """

    def __init__(self, llm_client: LLMClient = None, circuit_breaker: CircuitBreaker = None,
                 apology_text: str = None):
        self.logger = get_logger(__name__)
        self.llm_client = llm_client or get_llm_client()
        self.circuit_breaker = circuit_breaker or get_ai_circuit_breaker()
        self.apology_text = apology_text or get_config().llm.apology_text

    async def complete(self, message: str, context: str) -> str:
        """
        Generate a reply to a user message

        Args:
            message: The user's message text
            context: Recent transcript, one "username: text" line per message

        Returns:
            Reply text, or the apology text on any failure
        """
        prompt = build_prompt(message, context)

        try:
            llm = self.llm_client.get_llm()
            with log_execution_time(self.logger, "ai_completion"):
                response = await self.circuit_breaker.execute_async(
                    lambda: llm.ainvoke([HumanMessage(content=prompt)])
                )
        except CircuitBreakerError as e:
            self.logger.warning(f"AI backend skipped: {e}")
            return self.apology_text
        except Exception as e:
            self.logger.error(f"AI completion failed: {e.__class__.__name__}: {e}")
            return self.apology_text

        return self._extract_text(response)

    @staticmethod
    def _extract_text(response) -> str:
        content: Optional[object] = getattr(response, "content", response)
        if isinstance(content, list):
            # Content blocks: keep the text parts
            content = "".join(
                part.get("text", "") if isinstance(part, dict) else str(part) for part in content
            )
        return str(content or "").strip()


# Global responder instance
_ai_responder: Optional[AIResponder] = None


def get_ai_responder() -> AIResponder:
    """Get the global AI responder instance"""
    global _ai_responder
    if _ai_responder is None:
        _ai_responder = AIResponder()
    return _ai_responder
