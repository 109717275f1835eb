"""
LLM services for answer generation
"""
import logging
from typing import Protocol

from langchain_core.prompts import PromptTemplate
from langchain_groq import ChatGroq
from openai import AsyncOpenAI

from core.config import settings
from services.errors import GenerationError

logger = logging.getLogger(__name__)

ANSWER_TEMPLATE = """You are an AI assistant that answers questions based on the content of a PDF document.
Your answers should be concise and directly related to the information provided in the PDF content.
Do not provide information that is not present in the PDF content.

PDF Content: {pdf_content}

User Question: {user_question}

Answer:"""

answer_prompt = PromptTemplate(
    input_variables=["pdf_content", "user_question"],
    template=ANSWER_TEMPLATE,
)


class AnswerService(Protocol):
    async def generate_answer(self, context: str, question: str) -> str: ...


def _require_answer(answer: str | None) -> str:
    if not answer or not answer.strip():
        raise GenerationError("Model returned an empty answer")
    return answer.strip()


class GroqAnswerService:
    """Answers through Groq via langchain."""

    def __init__(self, model: str = "llama-3.1-8b-instant", temperature: float = 0.1, api_key: str = ""):
        # Built on first use so importing does not fail without GROQ_API_KEY
        self._chain = None
        self.model = model
        self.temperature = temperature
        self.api_key = api_key

    def _ensure_chain(self):
        if self._chain is None:
            try:
                llm = ChatGroq(api_key=self.api_key or None, model_name=self.model, temperature=self.temperature)
            except Exception as e:
                raise GenerationError(f"Groq client could not be initialized: {e}") from e
            self._chain = answer_prompt | llm
        return self._chain

    async def generate_answer(self, context: str, question: str) -> str:
        chain = self._ensure_chain()
        try:
            result = await chain.ainvoke({"pdf_content": context, "user_question": question})
        except Exception as e:
            raise GenerationError(f"Groq request failed: {e}") from e
        return _require_answer(getattr(result, "content", str(result)))


class OpenAIAnswerService:
    """Answers through OpenAI's chat models."""

    def __init__(self, model: str = "gpt-4o-mini", temperature: float = 0.1, max_tokens: int = 500, api_key: str = ""):
        self._client = None
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.api_key = api_key

    def _ensure_client(self) -> AsyncOpenAI:
        if self._client is None:
            try:
                self._client = AsyncOpenAI(api_key=self.api_key or None)
            except Exception as e:
                raise GenerationError(
                    "OpenAI client could not be initialized. "
                    f"Set the OPENAI_API_KEY environment variable. Original error: {e}"
                ) from e
        return self._client

    async def generate_answer(self, context: str, question: str) -> str:
        client = self._ensure_client()
        prompt = answer_prompt.format(pdf_content=context, user_question=question)
        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except Exception as e:
            raise GenerationError(f"OpenAI request failed: {e}") from e
        return _require_answer(response.choices[0].message.content)


def get_answer_service() -> AnswerService:
    if settings.LLM_PROVIDER == "openai":
        return OpenAIAnswerService(
            model=settings.CHAT_MODEL,
            temperature=settings.TEMPERATURE,
            max_tokens=settings.MAX_TOKENS,
            api_key=settings.OPENAI_API_KEY,
        )
    return GroqAnswerService(
        model=settings.GROQ_MODEL,
        temperature=settings.TEMPERATURE,
        api_key=settings.GROQ_API_KEY,
    )
