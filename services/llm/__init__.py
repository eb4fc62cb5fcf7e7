"""
Language-model intent parsers.
"""
from .intent_parser import (
    IntentParser,
    OpenAIIntentParser,
    OpenSourceIntentParser,
    create_intent_parser,
    error_intent,
    extract_json_text,
)

__all__ = [
    'IntentParser',
    'OpenAIIntentParser',
    'OpenSourceIntentParser',
    'create_intent_parser',
    'error_intent',
    'extract_json_text',
]
