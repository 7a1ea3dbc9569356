"""Text generation backends for the clinical reasoner.

Both backends satisfy the same narrow contract: prompt and sampling
constraints in, raw text out. Provider selection happens once, at startup.
"""

from __future__ import annotations

import logging
from typing import Protocol

from claude_agent_sdk import (
    AssistantMessage,
    CLIConnectionError,
    CLIJSONDecodeError,
    CLINotFoundError,
    ClaudeAgentOptions,
    ProcessError,
    ResultMessage,
    query,
)
from google import genai
from google.genai import types

from regimen_safety.config import Settings
from regimen_safety.models.schemas import GenerationConfig

logger = logging.getLogger(__name__)


class TextGenerationError(Exception):
    """Raised when a backend cannot produce text for a prompt."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


class TextGenerator(Protocol):
    async def generate(self, prompt: str, config: GenerationConfig) -> str: ...


# --- Gemini (google-genai) ---

_genai_client: genai.Client | None = None


def get_genai_client(settings: Settings) -> genai.Client:
    """Get or create the Google GenAI client.

    Uses the API key when set, otherwise Vertex AI via ADC. The same client
    exposes the async interface under client.aio.
    """
    global _genai_client
    if _genai_client is None:
        if settings.google_api_key:
            _genai_client = genai.Client(api_key=settings.google_api_key)
        else:
            _genai_client = genai.Client(
                vertexai=True,
                project=settings.gcp_project_id,
                location=settings.gcp_location,
            )
    return _genai_client


class GeminiTextGenerator:
    def __init__(self, client: genai.Client, model: str) -> None:
        self.client = client
        self.model = model

    async def generate(self, prompt: str, config: GenerationConfig) -> str:
        logger.info(
            "Gemini generate: model=%s temperature=%.2f max_output_tokens=%d",
            self.model,
            config.temperature,
            config.max_output_tokens,
        )
        response = await self.client.aio.models.generate_content(
            model=self.model,
            contents=prompt,
            config=types.GenerateContentConfig(
                temperature=config.temperature,
                top_k=config.top_k,
                top_p=config.top_p,
                max_output_tokens=config.max_output_tokens,
            ),
        )
        text = response.text
        if not text:
            raise TextGenerationError(
                code="EMPTY_RESPONSE",
                message=f"Gemini model {self.model} returned no text",
            )
        logger.debug("Gemini response (%d chars)", len(text))
        return text


# --- Claude (claude-agent-sdk) ---


class ClaudeTextGenerator:
    """Single-turn Claude call without tools.

    The agent SDK does not expose sampling parameters, so only the output
    budget from GenerationConfig is reported in the logs.
    """

    def __init__(self, model: str, api_key: str = "") -> None:
        self.model = model
        self.api_key = api_key

    async def generate(self, prompt: str, config: GenerationConfig) -> str:
        options = ClaudeAgentOptions(
            model=self.model,
            max_turns=1,
            permission_mode="bypassPermissions",
            env={"ANTHROPIC_API_KEY": self.api_key} if self.api_key else {},
        )
        logger.info(
            "Claude generate: model=%s max_turns=1 (max_output_tokens=%d ignored)",
            self.model,
            config.max_output_tokens,
        )

        text = None
        try:
            async for message in query(prompt=prompt, options=options):
                if isinstance(message, AssistantMessage):
                    logger.debug("AssistantMessage received (model=%s)", message.model)
                elif isinstance(message, ResultMessage):
                    logger.info(
                        "ResultMessage: num_turns=%d duration=%dms is_error=%s",
                        message.num_turns,
                        message.duration_ms,
                        message.is_error,
                    )
                    if message.is_error:
                        raise TextGenerationError(
                            code="AGENT_ERROR",
                            message=message.result or "Agent returned an error",
                        )
                    text = message.result
        except TextGenerationError:
            raise
        except CLINotFoundError:
            raise TextGenerationError(
                code="CLI_NOT_FOUND",
                message="Claude Code CLI not found. Ensure it is installed.",
            )
        except CLIConnectionError as e:
            raise TextGenerationError(
                code="CLI_CONNECTION_ERROR",
                message=f"Failed to connect to Claude CLI: {e}",
            )
        except ProcessError as e:
            raise TextGenerationError(
                code="PROCESS_ERROR",
                message=f"Agent process failed: {e}",
            )
        except CLIJSONDecodeError as e:
            raise TextGenerationError(
                code="JSON_DECODE_ERROR",
                message=f"Failed to parse agent response: {e}",
            )

        if not text:
            raise TextGenerationError(
                code="NO_RESULT",
                message="Agent did not return a result message",
            )
        return text


def build_text_generator(settings: Settings) -> TextGenerator | None:
    """Return the configured backend, or None when no credential is present."""
    if settings.ai_provider == "claude":
        if not settings.anthropic_api_key:
            return None
        return ClaudeTextGenerator(
            model=settings.ai_model, api_key=settings.anthropic_api_key
        )

    if not (settings.google_api_key or settings.use_vertex_ai):
        return None
    return GeminiTextGenerator(
        client=get_genai_client(settings), model=settings.gemini_model
    )
