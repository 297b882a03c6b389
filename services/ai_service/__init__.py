"""
AI service - assistant replies for @mentions, built on the LLM client.
"""

from .ai_responder import AIResponder, build_prompt, get_ai_responder
from .llm_client import LLMClient, get_llm_client

__all__ = [
    'AIResponder',
    'build_prompt',
    'get_ai_responder',
    'LLMClient',
    'get_llm_client'
]
