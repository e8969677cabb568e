"""LLM Client for Groq API integration."""
import time
from dataclasses import dataclass
from typing import Optional, Dict, Any
from groq import AsyncGroq
from groq import RateLimitError, AuthenticationError, APIError, APITimeoutError
import logging

from config import GROQ_API_KEY, COMPLETION_MODEL, COMPLETION_MAX_TOKENS
from errors import ProviderError

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Response from LLM generation."""
    text: str
    tokens_input: int
    tokens_output: int
    latency_ms: int
    model_used: str


@dataclass
class LLMError:
    """Structured error response from LLM operations."""
    code: str
    message: str
    details: Dict[str, Any]


class LLMClientError(ProviderError):
    """Completion provider failure with structured error information."""

    def __init__(self, error: LLMError):
        self.error = error
        super().__init__(error.code, error.message, error.details)


class LLMClient:
    """Client for the completion provider (Groq chat completions)."""

    def __init__(self, api_key: Optional[str] = None, model: str = COMPLETION_MODEL):
        """
        Initialize LLM client with Groq API key.

        Args:
            api_key: Groq API key (defaults to GROQ_API_KEY from environment)
            model: Chat model used for answers
        """
        self.api_key = api_key or GROQ_API_KEY
        if not self.api_key:
            raise ValueError("GROQ_API_KEY must be provided or set in environment")

        self.model = model
        self.client = AsyncGroq(api_key=self.api_key)
        logger.info("LLMClient initialized successfully")

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        model: Optional[str] = None,
        max_tokens: int = COMPLETION_MAX_TOKENS
    ) -> LLMResponse:
        """
        Generate an answer for a system/user prompt pair.

        Args:
            system_prompt: Instructions fixing how the model may answer
            user_prompt: Context and question
            model: Override for the configured chat model
            max_tokens: Maximum tokens to generate

        Returns:
            LLMResponse with text, token counts, and latency

        Raises:
            LLMClientError: Structured error with code, message, and details
        """
        model = model or self.model
        start_time = time.time()

        try:
            logger.debug(f"Generating response with model: {model}")

            response = await self.client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt}
                ],
                max_tokens=max_tokens,
                temperature=0.2
            )

            latency_ms = int((time.time() - start_time) * 1000)
            text = response.choices[0].message.content or ""
            tokens_input = response.usage.prompt_tokens
            tokens_output = response.usage.completion_tokens

            logger.info(
                f"Generated response: model={model}, "
                f"input_tokens={tokens_input}, output_tokens={tokens_output}, "
                f"latency={latency_ms}ms"
            )

            return LLMResponse(
                text=text,
                tokens_input=tokens_input,
                tokens_output=tokens_output,
                latency_ms=latency_ms,
                model_used=model
            )

        except RateLimitError as e:
            raise self._error(
                "RATE_LIMIT_ERROR",
                "Rate limit exceeded. Please try again in a few moments.",
                model, start_time, e, retry_after=60
            )

        except AuthenticationError as e:
            raise self._error(
                "AUTHENTICATION_ERROR",
                "Authentication failed. Please check your API key.",
                model, start_time, e
            )

        except APITimeoutError as e:
            raise self._error(
                "TIMEOUT_ERROR",
                "Request timed out. Please try again.",
                model, start_time, e
            )

        except APIError as e:
            raise self._error("API_ERROR", f"Groq API error: {str(e)}", model, start_time, e)

        except Exception as e:
            raise self._error(
                "UNKNOWN_ERROR",
                f"Unexpected error during generation: {str(e)}",
                model, start_time, e, error_type=type(e).__name__
            )

    @staticmethod
    def _error(code: str, message: str, model: str, start_time: float, exc: Exception, **extra) -> LLMClientError:
        latency_ms = int((time.time() - start_time) * 1000)
        error = LLMError(
            code=code,
            message=message,
            details={
                "model": model,
                "latency_ms": latency_ms,
                "original_error": str(exc),
                **extra
            }
        )
        logger.error(
            f"{code}: model={model}, latency={latency_ms}ms, error={exc}",
            exc_info=True,
            extra={"error_code": error.code, "error_details": error.details}
        )
        return LLMClientError(error)
