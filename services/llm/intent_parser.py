"""
Natural-language intent parsing through a chat-completions model.

The parser is a low-trust collaborator: it only proposes an intent object.
Transport and parsing failures never raise; they come back as an intent of
type "error" with zero confidence so that the engine rejects them.
"""
import json
import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from utils.config import (
    LLM_PROVIDER,
    OPEN_SOURCE_LLM_ENDPOINT,
    OPEN_SOURCE_LLM_MODEL,
    OPENAI_API_KEY,
    OPENAI_BASE_URL,
    OPENAI_MODEL,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a natural language processor for a Uniswap V2 style exchange.
Convert user commands into structured data for blockchain transactions.
Available commands:
- swap: "swap X TOKEN1 for TOKEN2" (optionally "with Y% slippage")
- deposit: "deposit X TOKEN1 and Y TOKEN2" (adds liquidity to an existing pool)
- query: "what are the reserves of the TOKEN1-TOKEN2 pool", "how many swaps today
  in pool 0x...", "show the price distribution of the TOKEN1-TOKEN2 pool"

Respond with a JSON object only:
{
  "type": "swap" | "deposit" | "query" | "error",
  "action": "function name",
  "params": {
    // swap: "amountIn", "tokenIn", "tokenOut", optional "slippage"
    // deposit: "amountA", "tokenA", "amountB", "tokenB", optional "slippage"
    // query: "intent" ("getReserves" | "swapCount" | "priceDistribution"),
    //        "poolAddress" or "tokenA" and "tokenB",
    //        optional "timeframe" ("today" or {"from": unix, "to": unix})
  },
  "confidence": number between 0 and 1,
  "explanation": "brief explanation of the parsed command"
}
Use token symbols exactly as the user wrote them. Amounts are decimal strings."""


def error_intent(explanation: str) -> Dict[str, Any]:
    """Intent returned whenever the command cannot be parsed."""
    return {
        "type": "error",
        "action": "error",
        "params": {},
        "confidence": 0,
        "explanation": explanation,
    }


def extract_json_text(raw_text: str) -> str:
    """Best-effort extraction of a JSON object from model output text.

    Models asked for strict JSON still sometimes wrap it in Markdown fences
    or add commentary around it.
    """
    text = raw_text.strip()
    if not text:
        return text

    fenced = re.search(r"```(?:json)?\s*(\{[\s\S]*?\})\s*```", text, flags=re.IGNORECASE)
    if fenced:
        return fenced.group(1).strip()

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end != -1 and end > start:
        return text[start:end + 1].strip()

    return text


class IntentParser:
    """Base class for chat-completions intent parsers."""

    provider: str = "base"

    def __init__(self, model: str, timeout: float = 30) -> None:
        self.model = model
        self.timeout = timeout

    def _endpoint(self) -> str:
        raise NotImplementedError

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    def _payload(self, messages: List[Dict[str, str]]) -> Dict[str, Any]:
        return {"model": self.model, "messages": messages}

    async def _call_llm(self, command: str) -> Dict[str, Any]:
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": command},
        ]
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                self._endpoint(),
                headers=self._headers(),
                json=self._payload(messages),
            )
            if response.status_code >= 400:
                logger.error(f"{self.provider} LLM API error ({response.status_code}): {response.text[:200]}")
                response.raise_for_status()
            return response.json()

    def _parse_completion(self, response: Dict[str, Any]) -> Dict[str, Any]:
        """Pull the intent object out of a chat-completions response."""
        choices = response.get("choices") or []
        content: Optional[str] = None
        if choices and isinstance(choices[0], dict):
            content = (choices[0].get("message") or {}).get("content")

        if not content or not isinstance(content, str):
            logger.warning(f"Empty response from {self.provider} LLM")
            return error_intent("Failed to process command")

        try:
            parsed = json.loads(extract_json_text(content))
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse {self.provider} LLM response: {e}")
            return error_intent("Failed to parse command")

        if not isinstance(parsed, dict):
            return error_intent("Failed to parse command")
        return parsed

    async def process_command(self, command: str) -> Dict[str, Any]:
        """Convert free text to an intent-shaped dict.

        Args:
            command: User's command, e.g. "swap 10 testUSDC for ETH"

        Returns:
            Dict: Parser output with type, params, confidence and explanation
        """
        if not command or not command.strip():
            return error_intent("Empty command")

        try:
            response = await self._call_llm(command)
        except httpx.HTTPStatusError as e:
            logger.error(f"LLM request failed (HTTP error): {e}")
            return error_intent("Failed to process command")
        except httpx.TimeoutException as e:
            logger.error(f"LLM request timed out: {e}")
            return error_intent("The language model took too long to respond")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"LLM request failed: {e}")
            return error_intent("Failed to process command")

        parsed = self._parse_completion(response)
        logger.info(
            f"Parsed command as {parsed.get('type')} (confidence {parsed.get('confidence')}): "
            f"{parsed.get('explanation', '')}"
        )
        return parsed


class OpenAIIntentParser(IntentParser):
    """OpenAI chat completions with a JSON-object response format."""

    provider = "openai"

    def __init__(
        self,
        api_key: Optional[str] = OPENAI_API_KEY,
        model: str = OPENAI_MODEL,
        base_url: str = OPENAI_BASE_URL,
        timeout: float = 30,
    ) -> None:
        if not api_key:
            raise ValueError("OPENAI_API_KEY environment variable not set")
        super().__init__(model, timeout)
        self.api_key = api_key
        self.base_url = base_url.rstrip('/')

    def _endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _payload(self, messages: List[Dict[str, str]]) -> Dict[str, Any]:
        payload = super()._payload(messages)
        payload["response_format"] = {"type": "json_object"}
        payload["temperature"] = 0.1
        payload["max_tokens"] = 500
        return payload


class OpenSourceIntentParser(IntentParser):
    """Any OpenAI-compatible chat-completions endpoint (self-hosted models)."""

    provider = "open-source"

    def __init__(
        self,
        endpoint: Optional[str] = OPEN_SOURCE_LLM_ENDPOINT,
        model: str = OPEN_SOURCE_LLM_MODEL,
        timeout: float = 30,
    ) -> None:
        if not endpoint:
            raise ValueError("OPEN_SOURCE_LLM_ENDPOINT is required for the open-source LLM provider")
        super().__init__(model or "default", timeout)
        self.endpoint = endpoint

    def _endpoint(self) -> str:
        return self.endpoint


def create_intent_parser(provider: str = LLM_PROVIDER, **kwargs: Any) -> IntentParser:
    """Build the parser for a provider name ("openai" or "open-source").

    Raises:
        ValueError: For an unsupported provider or missing credentials
    """
    if provider == "openai":
        return OpenAIIntentParser(**kwargs)
    if provider == "open-source":
        return OpenSourceIntentParser(**kwargs)
    raise ValueError(f"Unsupported LLM provider: {provider}")
