from typing import Any, Dict, List, Optional

from openai import OpenAI, OpenAIError, APIStatusError, RateLimitError

from secura.config import settings
from secura.utils.logging_config import StructuredLogger

logger = StructuredLogger(__name__)


class GatewayError(Exception):
    """Upstream gateway failure, carrying the status and message relayed to the client."""

    status_code = 500
    default_message = "AI analysis failed"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class GatewayNotConfigured(GatewayError):
    default_message = "AI service not configured"


class GatewayRateLimited(GatewayError):
    status_code = 429
    default_message = "Rate limit exceeded. Please try again later."


class GatewayQuotaExhausted(GatewayError):
    status_code = 402
    default_message = "AI service credits exhausted. Please add credits."


class GatewayClient:
    """
    Wrapper around the OpenAI client pointed at an OpenAI-compatible
    chat-completion gateway.
    """

    def __init__(self, model: str | None = None, client: Any = None):
        self.model = model or settings.gateway_forensics_model
        self._client = client

    @property
    def client(self):
        if self._client is None:
            if not settings.gateway_api_key:
                logger.error("Gateway API key not configured")
                raise GatewayNotConfigured()
            self._client = OpenAI(
                api_key=settings.gateway_api_key,
                base_url=settings.gateway_base_url,
                timeout=settings.gateway_timeout,
                max_retries=0,
            )
        return self._client

    def complete(
        self,
        messages: List[Dict[str, Any]],
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Send one chat completion and return the first choice's text."""
        model = model or self.model
        try:
            response = self.client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature if temperature is not None else settings.forensics_temperature,
                max_tokens=max_tokens or settings.gateway_max_tokens,
            )
        except RateLimitError as e:
            logger.warning("Gateway rate limited", model=model, error=str(e))
            raise GatewayRateLimited() from e
        except APIStatusError as e:
            logger.error("Gateway error", model=model, status=e.status_code, error=str(e))
            if e.status_code == 402:
                raise GatewayQuotaExhausted() from e
            raise GatewayError(f"AI analysis failed: {e.status_code}") from e
        except OpenAIError as e:
            logger.error("Gateway unreachable", model=model, error=str(e))
            raise GatewayError(f"AI analysis failed: {type(e).__name__}") from e

        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content:
            raise GatewayError("No response from AI analysis")

        logger.debug("Gateway response", model=model, content=content)
        return content
