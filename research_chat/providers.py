"""
Generation providers for Research Chat.

Each provider wraps a LangChain chat model and exposes the three operations the
session core needs: title + clarifying questions, a research document, and a
summary of a combined report. Providers never raise to their callers; failures are
logged and returned as unsuccessful results.
"""

import json
import logging
import re
from typing import Any, List, Optional, Sequence

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_openai import ChatOpenAI

from research_chat.config import Config, ProviderConfig
from research_chat.exceptions import ProviderFailure
from research_chat.models import FALLBACK_TITLE, ProviderResult, TitleAndQuestions
from research_chat import prompts

logger = logging.getLogger(__name__)

MIN_QUESTIONS = 2
MAX_QUESTIONS = 4

_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{[\s\S]*?\})\s*```", re.IGNORECASE)
_BRACED = re.compile(r"\{[\s\S]*\}")


def _content_text(content: Any) -> str:
    """Flatten LangChain message content (string or list of blocks) to text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type", "text") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return str(content or "")


def parse_title_and_questions(raw: str) -> Optional[dict]:
    """Parse the JSON object, with one recovery attempt for fenced or embedded JSON."""
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        pass

    match = _FENCED_JSON.search(raw) or _BRACED.search(raw)
    if not match:
        return None
    candidate = match.group(1) if match.re is _FENCED_JSON else match.group(0)
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        return None


class ResearchProvider:
    """Base class for a research provider backed by a LangChain chat model."""

    name = "provider"
    default_display_name = "Provider"
    aliases: List[str] = []

    def __init__(self, llm: BaseChatModel, display_name: Optional[str] = None, web_search: bool = False):
        self.llm = llm
        self.display_name = display_name or self.default_display_name
        self.web_search = web_search

    @property
    def header_aliases(self) -> List[str]:
        return [self.display_name] + list(self.aliases)

    async def _complete(self, prompt: str, step: str) -> str:
        response = await self.llm.ainvoke([HumanMessage(content=prompt)])
        text = _content_text(getattr(response, "content", response)).strip()
        if not text:
            raise ProviderFailure(self.name, step, "empty response")
        return text

    def research_prompt(self, topic: str, questions: Sequence[str], answers: Sequence[str]) -> str:
        raise NotImplementedError

    async def generate_title_and_questions(self, topic: str) -> TitleAndQuestions:
        """Generate a session title and 2-4 clarifying questions for a topic."""
        logger.info(f"{self.name}: generating title and clarifying questions")
        try:
            raw = await self._complete(prompts.title_and_questions_prompt(topic), "clarify")
            result = parse_title_and_questions(raw)
            if not isinstance(result, dict):
                raise ProviderFailure(self.name, "clarify", "response is not a JSON object")

            title = result.get("title")
            questions = result.get("questions")
            if not isinstance(title, str) or not title.strip():
                raise ProviderFailure(self.name, "clarify", "missing or invalid title")
            if not isinstance(questions, list):
                raise ProviderFailure(self.name, "clarify", "missing or invalid questions")

            questions = [q.strip() for q in questions if isinstance(q, str) and q.strip()][:MAX_QUESTIONS]
            if len(questions) < MIN_QUESTIONS:
                raise ProviderFailure(self.name, "clarify", f"only {len(questions)} usable questions")

            return TitleAndQuestions(success=True, provider=self.name, title=title.strip(), questions=questions)

        except Exception as e:
            logger.error(f"{self.name}: title and question generation failed: {e}")
            return TitleAndQuestions(
                success=False,
                provider=self.name,
                title=FALLBACK_TITLE,
                questions=[],
                error="Failed to generate title and questions",
            )

    async def generate_research_document(self, topic: str, questions: Sequence[str], answers: Sequence[str]) -> ProviderResult:
        """Generate a full research document from the topic and clarifications."""
        logger.info(f"{self.name}: generating research document")
        try:
            content = await self._complete(self.research_prompt(topic, questions, answers), "research")
            return ProviderResult(success=True, provider=self.name, content=content)
        except Exception as e:
            logger.error(f"{self.name}: research document generation failed: {e}")
            return ProviderResult(success=False, provider=self.name, error="Failed to generate research page")

    async def summarize_report(self, combined: str) -> ProviderResult:
        """Summarize a combined report into a few plain paragraphs."""
        logger.info(f"{self.name}: summarizing combined report")
        try:
            content = await self._complete(prompts.summary_prompt(combined), "summarize")
            return ProviderResult(success=True, provider=self.name, content=content)
        except Exception as e:
            logger.error(f"{self.name}: summarization failed: {e}")
            return ProviderResult(success=False, provider=self.name, error="Failed to summarize combined report")


class OpenAIResearchProvider(ResearchProvider):
    """Primary provider: OpenAI chat model, optionally with the built-in web search tool."""

    name = "openai"
    default_display_name = "ChatGPT (OpenAI)"
    aliases = ["ChatGPT", "OpenAI"]

    def research_prompt(self, topic, questions, answers):
        return prompts.primary_research_prompt(topic, questions, answers, web_search=self.web_search)

    @classmethod
    def from_config(cls, provider_config: ProviderConfig) -> "OpenAIResearchProvider":
        llm = ChatOpenAI(
            model=provider_config.model_name,
            temperature=provider_config.temperature,
            max_tokens=provider_config.max_tokens,
            timeout=provider_config.timeout,
            api_key=provider_config.api_key,
        )
        if provider_config.web_search:
            llm = llm.bind_tools([{"type": "web_search_preview"}])
        return cls(llm, display_name=provider_config.display_name, web_search=provider_config.web_search)


class GeminiResearchProvider(ResearchProvider):
    """Secondary provider and summarizer: Google Gemini."""

    name = "gemini"
    default_display_name = "Gemini (Google)"
    aliases = ["Gemini", "Google"]

    def research_prompt(self, topic, questions, answers):
        return prompts.secondary_research_prompt(topic, questions, answers)

    @classmethod
    def from_config(cls, provider_config: ProviderConfig) -> "GeminiResearchProvider":
        llm = ChatGoogleGenerativeAI(
            model=provider_config.model_name,
            temperature=provider_config.temperature,
            max_output_tokens=provider_config.max_tokens,
            timeout=provider_config.timeout,
            google_api_key=provider_config.api_key,
        )
        return cls(llm, display_name=provider_config.display_name)


class ProviderGateway:
    """The set of providers a session machine talks to."""

    def __init__(
        self,
        primary: ResearchProvider,
        secondary: Optional[ResearchProvider] = None,
        summarizer: Optional[ResearchProvider] = None,
    ):
        self.primary = primary
        self.secondary = secondary
        self.summarizer = summarizer

    @classmethod
    def from_config(cls, cfg: Config) -> "ProviderGateway":
        """Build providers for every configured service."""
        primary = OpenAIResearchProvider.from_config(cfg.primary)

        secondary = None
        if cfg.secondary_enabled and cfg.secondary.api_key:
            secondary = GeminiResearchProvider.from_config(cfg.secondary)
        else:
            logger.warning("Secondary provider not configured; reports will contain the primary provider only")

        summarizer = secondary if cfg.summarizer_enabled else None
        return cls(primary=primary, secondary=secondary, summarizer=summarizer)
