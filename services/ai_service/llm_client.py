"""
LLM client - builds the chat model used by the AI responder.
"""

from langchain_openai import ChatOpenAI
from typing import Optional

from config.app_config import get_config, get_openai_api_key
from utils.logging_config import get_logger


class LLMClient:
    """
    Client for LLM setup.
    Handles ChatOpenAI initialization and configuration.
    """

    def __init__(self):
        self.logger = get_logger(__name__)
        self.config = get_config()
        self._llm = None

    def get_llm(self) -> ChatOpenAI:
        """
        Get configured ChatOpenAI instance

        Returns:
            Configured ChatOpenAI instance

        Raises:
            ValueError: If no OpenAI API key is configured
        """
        if self._llm is None:
            api_key = get_openai_api_key()
            if not api_key:
                raise ValueError("OpenAI API key not configured")

            self._llm = ChatOpenAI(
                model=self.config.llm.model_name,
                temperature=self.config.llm.temperature,
                top_p=self.config.llm.top_p,
                max_tokens=self.config.llm.max_tokens,
                api_key=api_key,
            )

            self.logger.info(f"LLM initialized: {self.config.llm.model_name}")

        return self._llm


# Global client instance
_llm_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    """Get the global LLM client instance"""
    global _llm_client
    if _llm_client is None:
        _llm_client = LLMClient()
    return _llm_client
