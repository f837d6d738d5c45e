import json
import re
from datetime import date

from loguru import logger
from openai import AsyncOpenAI, OpenAIError
from pydantic import ValidationError

from kasbot.config import Settings
from kasbot.errors import ClassifierError
from kasbot.llm.prompts import build_intent_messages
from kasbot.models.schemas import INTENT_NAMES, IntentResult, Provider

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DEEPSEEK_BASE_URL = "https://api.deepseek.com"

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def parse_intent_response(raw: str, provider: Provider) -> IntentResult:
    """Decode a model reply into an ``IntentResult``.

    A reply without a readable JSON object raises ``ClassifierError`` so the
    caller can fail over. Everything else degrades: an unknown intent name
    or parameters that do not fit the intent become ``unknown``.
    """
    text = raw.strip()
    # Strip markdown code fences if present
    if text.startswith("```"):
        lines = [line for line in text.split("\n") if not line.startswith("```")]
        text = "\n".join(lines)

    match = _JSON_OBJECT.search(text)
    if not match:
        raise ClassifierError(provider, "no JSON object in reply")
    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ClassifierError(provider, f"invalid JSON: {e}") from e

    intent = payload.get("intent")
    if intent not in INTENT_NAMES:
        logger.warning("Unrecognised intent {!r} from {}", intent, provider)
        return IntentResult.unknown(provider)

    params = payload.get("params")
    if not isinstance(params, dict):
        params = {}
    try:
        return IntentResult.model_validate(
            {
                "intent": intent,
                "params": {**params, "intent": intent},
                "confidence": payload.get("confidence"),
                "provider": provider,
            }
        )
    except ValidationError as e:
        logger.warning("Params for {} from {} rejected: {}", intent, provider, e)
        return IntentResult.unknown(provider)


class OpenAICompatibleBackend:
    """One chat-completions endpoint (OpenRouter, DeepSeek, ...) used as a classifier."""

    def __init__(
        self,
        name: Provider,
        api_key: str,
        base_url: str,
        model: str,
        timeout: float = 20.0,
        max_tokens: int = 512,
    ):
        self.name = name
        self.model = model
        self.max_tokens = max_tokens
        self.client = AsyncOpenAI(
            base_url=base_url,
            api_key=api_key,
            timeout=timeout,
            max_retries=0,
        )

    async def classify(self, message: str, today: date) -> IntentResult:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=build_intent_messages(message, today),
                temperature=0.1,
                max_tokens=self.max_tokens,
            )
        except OpenAIError as e:
            raise ClassifierError(self.name, str(e)) from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise ClassifierError(self.name, "empty reply")
        logger.debug("{} raw reply: {}", self.name, content)
        return parse_intent_response(content, self.name)


class IntentClassifier:
    """Free primary backend while under the daily threshold, paid fallback otherwise.

    Never raises: if every backend fails the result is ``unknown`` with
    confidence 0.
    """

    def __init__(self, primary=None, fallback=None, daily_threshold: int = 8000):
        self.primary = primary
        self.fallback = fallback
        self.daily_threshold = daily_threshold

    async def classify(self, message: str, today: date, usage_count: int = 0) -> IntentResult:
        if self.primary is not None:
            if usage_count < self.daily_threshold:
                try:
                    result = await self.primary.classify(message, today)
                    logger.info("Intent via primary: {} ({:.2f})", result.intent, result.confidence)
                    return result
                except ClassifierError as e:
                    logger.warning("Primary classifier failed, falling back: {}", e)
            else:
                logger.info(
                    "Usage {} >= threshold {}, using fallback", usage_count, self.daily_threshold
                )

        if self.fallback is not None:
            try:
                result = await self.fallback.classify(message, today)
                logger.info("Intent via fallback: {} ({:.2f})", result.intent, result.confidence)
                return result
            except ClassifierError as e:
                logger.error("Fallback classifier failed too: {}", e)

        return IntentResult.unknown()


def build_classifier(settings: Settings) -> IntentClassifier:
    primary = None
    if settings.openrouter_api_key:
        primary = OpenAICompatibleBackend(
            "primary",
            api_key=settings.openrouter_api_key,
            base_url=OPENROUTER_BASE_URL,
            model=settings.primary_model,
            timeout=settings.classifier_timeout_seconds,
        )
    fallback = None
    if settings.deepseek_api_key:
        fallback = OpenAICompatibleBackend(
            "fallback",
            api_key=settings.deepseek_api_key,
            base_url=DEEPSEEK_BASE_URL,
            model=settings.fallback_model,
            timeout=settings.classifier_timeout_seconds,
        )
    if primary is None and fallback is None:
        logger.warning("No classifier API key configured; free text will not be understood")
    return IntentClassifier(primary, fallback, settings.primary_daily_threshold)
