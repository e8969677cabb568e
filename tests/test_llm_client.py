"""Unit tests for LLMClient."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
import httpx
from unittest.mock import AsyncMock, Mock, patch
from errors import ProviderError
from services.llm_client import LLMClient, LLMResponse, LLMClientError
from groq import RateLimitError, AuthenticationError, APIError, APITimeoutError

GROQ_REQUEST = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")


def groq_response(status_code):
    return httpx.Response(status_code, request=GROQ_REQUEST)


def mock_completion(text="The answer.", prompt_tokens=120, completion_tokens=15):
    response = Mock()
    response.choices = [Mock()]
    response.choices[0].message.content = text
    response.usage.prompt_tokens = prompt_tokens
    response.usage.completion_tokens = completion_tokens
    return response


def client_raising(mock_groq_class, error):
    mock_client = Mock()
    mock_client.chat.completions.create = AsyncMock(side_effect=error)
    mock_groq_class.return_value = mock_client
    return LLMClient(api_key="test_key")


class TestLLMClient:
    """Test suite for LLMClient class."""

    @patch('services.llm_client.AsyncGroq')
    def test_initialization_with_api_key(self, mock_groq_class):
        """Test LLMClient initializes with provided API key."""
        client = LLMClient(api_key="test_key", model="llama-test")
        assert client.api_key == "test_key"
        assert client.model == "llama-test"
        mock_groq_class.assert_called_once_with(api_key="test_key")

    def test_initialization_without_api_key_raises_error(self):
        """Test LLMClient raises error when no API key provided."""
        with patch('services.llm_client.GROQ_API_KEY', None):
            with pytest.raises(ValueError, match="GROQ_API_KEY must be provided"):
                LLMClient()

    @pytest.mark.asyncio
    @patch('services.llm_client.AsyncGroq')
    async def test_complete_success(self, mock_groq_class):
        """Test successful completion returns text, usage and model."""
        mock_client = Mock()
        mock_client.chat.completions.create = AsyncMock(return_value=mock_completion())
        mock_groq_class.return_value = mock_client

        client = LLMClient(api_key="test_key", model="llama-test")
        response = await client.complete("system rules", "Context:\n...\n\nQuestion: Who?")

        assert isinstance(response, LLMResponse)
        assert response.text == "The answer."
        assert response.tokens_input == 120
        assert response.tokens_output == 15
        assert response.model_used == "llama-test"
        assert response.latency_ms >= 0

        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "llama-test"
        assert kwargs["messages"] == [
            {"role": "system", "content": "system rules"},
            {"role": "user", "content": "Context:\n...\n\nQuestion: Who?"}
        ]

    @pytest.mark.asyncio
    @patch('services.llm_client.AsyncGroq')
    async def test_complete_model_override(self, mock_groq_class):
        mock_client = Mock()
        mock_client.chat.completions.create = AsyncMock(return_value=mock_completion())
        mock_groq_class.return_value = mock_client

        client = LLMClient(api_key="test_key", model="llama-test")
        response = await client.complete("s", "u", model="other-model", max_tokens=50)

        assert response.model_used == "other-model"
        assert mock_client.chat.completions.create.call_args.kwargs["max_tokens"] == 50

    @pytest.mark.asyncio
    @patch('services.llm_client.AsyncGroq')
    async def test_complete_handles_empty_content(self, mock_groq_class):
        mock_client = Mock()
        mock_client.chat.completions.create = AsyncMock(return_value=mock_completion(text=None))
        mock_groq_class.return_value = mock_client

        response = await LLMClient(api_key="test_key").complete("s", "u")

        assert response.text == ""

    @pytest.mark.asyncio
    @patch('services.llm_client.AsyncGroq')
    async def test_complete_handles_rate_limit_error(self, mock_groq_class):
        """Test that rate limit errors are handled with retry suggestion."""
        client = client_raising(mock_groq_class, RateLimitError(
            message="Rate limit exceeded",
            response=groq_response(429),
            body=None
        ))

        with pytest.raises(LLMClientError) as exc_info:
            await client.complete("s", "u", model="llama-test")

        error = exc_info.value.error
        assert error.code == "RATE_LIMIT_ERROR"
        assert error.details["retry_after"] == 60
        assert error.details["model"] == "llama-test"

    @pytest.mark.asyncio
    @patch('services.llm_client.AsyncGroq')
    async def test_complete_handles_authentication_error(self, mock_groq_class):
        client = client_raising(mock_groq_class, AuthenticationError(
            message="Invalid API key",
            response=groq_response(401),
            body=None
        ))

        with pytest.raises(LLMClientError) as exc_info:
            await client.complete("s", "u")

        assert exc_info.value.error.code == "AUTHENTICATION_ERROR"
        assert "Authentication failed" in exc_info.value.error.message

    @pytest.mark.asyncio
    @patch('services.llm_client.AsyncGroq')
    async def test_complete_handles_timeout_error(self, mock_groq_class):
        client = client_raising(mock_groq_class, APITimeoutError(request=GROQ_REQUEST))

        with pytest.raises(LLMClientError) as exc_info:
            await client.complete("s", "u")

        assert exc_info.value.error.code == "TIMEOUT_ERROR"
        assert "timed out" in exc_info.value.error.message

    @pytest.mark.asyncio
    @patch('services.llm_client.AsyncGroq')
    async def test_complete_handles_generic_api_error(self, mock_groq_class):
        client = client_raising(mock_groq_class, APIError(
            message="Service unavailable",
            request=GROQ_REQUEST,
            body=None
        ))

        with pytest.raises(LLMClientError) as exc_info:
            await client.complete("s", "u")

        assert exc_info.value.error.code == "API_ERROR"
        assert "Groq API error" in exc_info.value.error.message

    @pytest.mark.asyncio
    @patch('services.llm_client.AsyncGroq')
    async def test_complete_handles_unexpected_error(self, mock_groq_class):
        """Test unknown failures keep their type name in the details."""
        client = client_raising(mock_groq_class, KeyError("choices"))

        with pytest.raises(LLMClientError) as exc_info:
            await client.complete("s", "u")

        error = exc_info.value.error
        assert error.code == "UNKNOWN_ERROR"
        assert error.details["error_type"] == "KeyError"
        assert "latency_ms" in error.details

    @pytest.mark.asyncio
    @patch('services.llm_client.AsyncGroq')
    async def test_client_error_is_provider_error(self, mock_groq_class):
        """Test completion failures share the provider error contract."""
        client = client_raising(mock_groq_class, Exception("boom"))

        with pytest.raises(ProviderError) as exc_info:
            await client.complete("s", "u")

        assert exc_info.value.to_dict()["code"] == "UNKNOWN_ERROR"
