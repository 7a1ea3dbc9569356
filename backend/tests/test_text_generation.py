"""Unit tests for text generation backends, mocked at the SDK level."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from regimen_safety.agents.text_generation import (
    ClaudeTextGenerator,
    GeminiTextGenerator,
    TextGenerationError,
    build_text_generator,
)
from regimen_safety.config import Settings
from regimen_safety.models.schemas import GenerationConfig

CONFIG = GenerationConfig(
    temperature=0.2, top_k=40, top_p=0.95, max_output_tokens=4096
)


# --- Helpers ---


def _make_result_message(*, result=None, is_error=False):
    """Create a mock ResultMessage with the given fields."""
    from claude_agent_sdk import ResultMessage

    msg = AsyncMock()
    msg.result = result
    msg.is_error = is_error
    msg.num_turns = 1
    msg.duration_ms = 1200
    # Make isinstance(msg, ResultMessage) return True
    msg.__class__ = ResultMessage
    return msg


async def _async_iter(items):
    for item in items:
        yield item


def _gemini_client(text: str | None) -> MagicMock:
    client = MagicMock()
    response = MagicMock()
    response.text = text
    client.aio.models.generate_content = AsyncMock(return_value=response)
    return client


# --- Gemini ---


async def test_gemini_generate_passes_sampling_config() -> None:
    client = _gemini_client('{"is_safe": true}')
    generator = GeminiTextGenerator(client=client, model="gemini-2.0-flash")

    text = await generator.generate("prompt text", CONFIG)

    assert text == '{"is_safe": true}'
    kwargs = client.aio.models.generate_content.call_args.kwargs
    assert kwargs["model"] == "gemini-2.0-flash"
    assert kwargs["contents"] == "prompt text"
    assert kwargs["config"].temperature == 0.2
    assert kwargs["config"].top_k == 40
    assert kwargs["config"].max_output_tokens == 4096


async def test_gemini_empty_response_raises() -> None:
    generator = GeminiTextGenerator(client=_gemini_client(None), model="m")

    with pytest.raises(TextGenerationError) as exc_info:
        await generator.generate("prompt", CONFIG)

    assert exc_info.value.code == "EMPTY_RESPONSE"


# --- Claude ---


@patch("regimen_safety.agents.text_generation.query")
async def test_claude_generate_returns_result_text(mock_query) -> None:
    mock_query.return_value = _async_iter([_make_result_message(result="{}")])

    text = await ClaudeTextGenerator(model="claude-test").generate("prompt", CONFIG)

    assert text == "{}"
    options = mock_query.call_args.kwargs["options"]
    assert options.model == "claude-test"
    assert options.max_turns == 1


@patch("regimen_safety.agents.text_generation.query")
async def test_claude_agent_error(mock_query) -> None:
    mock_query.return_value = _async_iter(
        [_make_result_message(is_error=True, result="Model refused to answer")]
    )

    with pytest.raises(TextGenerationError) as exc_info:
        await ClaudeTextGenerator(model="claude-test").generate("prompt", CONFIG)

    assert exc_info.value.code == "AGENT_ERROR"
    assert "Model refused to answer" in exc_info.value.message


@patch("regimen_safety.agents.text_generation.query")
async def test_claude_no_result(mock_query) -> None:
    mock_query.return_value = _async_iter([])

    with pytest.raises(TextGenerationError) as exc_info:
        await ClaudeTextGenerator(model="claude-test").generate("prompt", CONFIG)

    assert exc_info.value.code == "NO_RESULT"


@patch("regimen_safety.agents.text_generation.query")
async def test_claude_cli_not_found(mock_query) -> None:
    from claude_agent_sdk import CLINotFoundError

    mock_query.side_effect = CLINotFoundError()

    with pytest.raises(TextGenerationError) as exc_info:
        await ClaudeTextGenerator(model="claude-test").generate("prompt", CONFIG)

    assert exc_info.value.code == "CLI_NOT_FOUND"


# --- Provider selection ---


def test_no_credential_means_no_generator() -> None:
    assert build_text_generator(Settings(_env_file=None, google_api_key="")) is None
    assert (
        build_text_generator(
            Settings(_env_file=None, ai_provider="claude", anthropic_api_key="")
        )
        is None
    )


def test_claude_selected_with_api_key() -> None:
    generator = build_text_generator(
        Settings(_env_file=None, ai_provider="claude", anthropic_api_key="sk-test")
    )
    assert isinstance(generator, ClaudeTextGenerator)
    assert generator.api_key == "sk-test"


@patch("regimen_safety.agents.text_generation.get_genai_client")
def test_gemini_selected_with_api_key(mock_get_client) -> None:
    generator = build_text_generator(
        Settings(_env_file=None, google_api_key="key", gemini_model="gemini-x")
    )
    assert isinstance(generator, GeminiTextGenerator)
    assert generator.model == "gemini-x"
    assert generator.client is mock_get_client.return_value
