"""Virtual concierge: forwards a customer question plus the service menu to a chat model.

Every failure path returns a fixed user-facing apology; nothing is raised to
the caller. No retry, caching or rate limiting.
"""
import asyncio
import os
from typing import Any, Iterable, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from salon_booking import config
from salon_booking.logging_config import get_logger
from salon_booking.models import Service

logger = get_logger(__name__)

GREETING_MESSAGE = (
    "Olá! Bem-vindo ao L'essence Studio. Como posso ajudar a realçar sua beleza hoje?"
)
UNAVAILABLE_MESSAGE = "Desculpe, a assistente virtual está indisponível no momento."
EMPTY_REPLY_MESSAGE = "Não consegui formular uma resposta."
FAILURE_MESSAGE = "Tive um pequeno problema técnico. Por favor, tente novamente."

SYSTEM_PROMPT = """Você é a assistente virtual sofisticada e prestativa do salão de beleza '{name}', localizado na Parquelândia, Fortaleza.
Slogan: "{slogan}"

Serviços disponíveis:
{services}

Responda à pergunta do cliente de forma curta, elegante e sugira um dos nossos serviços se for relevante.
Se o cliente perguntar algo fora do contexto de beleza/salão, redirecione educadamente para nossos serviços."""


def format_services(services: Iterable[Service]) -> str:
    """One line per service: '- name (R$ price, N min): description'."""
    return "\n".join(
        f"- {s.name} (R$ {s.price:g}, {s.duration_minutes} min): {s.description}"
        for s in services
    )


def _reply_text(response: Any) -> str:
    """Plain text of a chat-model reply; content may be a string or a list of parts."""
    content = getattr(response, "content", "") or ""
    if isinstance(content, list):
        content = "".join(
            part if isinstance(part, str)
            else part.get("text", "") if isinstance(part, dict)
            else ""
            for part in content
        )
    return str(content).strip()


class ServiceAssistant:
    """
    Chat-model bridge for service suggestions.

    The model client is created on first use and only when an API key is
    configured; without one every call returns UNAVAILABLE_MESSAGE.
    """

    def __init__(
        self,
        llm: Optional[Any] = None,
        api_key: Optional[str] = None,
        model: str = config.ASSISTANT_MODEL
    ):
        self._llm = llm
        self._api_key = api_key
        self._model = model

    def _get_llm(self) -> Optional[Any]:
        if self._llm is None:
            api_key = self._api_key or os.getenv("OPENAI_API_KEY")
            if not api_key:
                logger.warning("assistant_api_key_missing")
                return None
            self._llm = ChatOpenAI(
                model=self._model,
                temperature=0.4,
                max_tokens=300,
                api_key=api_key
            )
        return self._llm

    def build_messages(self, user_query: str, services: Iterable[Service]) -> list:
        system = SYSTEM_PROMPT.format(
            name=config.SALON["name"],
            slogan=config.SALON["slogan"],
            services=format_services(services),
        )
        return [SystemMessage(content=system), HumanMessage(content=user_query)]

    def suggest(self, user_query: str, services: Iterable[Service]) -> str:
        """
        Ask the model for a reply.

        Args:
            user_query: Customer message
            services: Current service catalog, in display order

        Returns:
            Model reply, or one of the fixed fallback messages
        """
        try:
            llm = self._get_llm()
            if llm is None:
                return UNAVAILABLE_MESSAGE

            response = llm.invoke(self.build_messages(user_query, services))
            text = _reply_text(response)
        except Exception as e:
            logger.error("assistant_call_failed", error=str(e))
            return FAILURE_MESSAGE

        return text or EMPTY_REPLY_MESSAGE

    async def asuggest(self, user_query: str, services: Iterable[Service]) -> str:
        """Same as suggest, run in a worker thread so the event loop stays free."""
        return await asyncio.to_thread(self.suggest, user_query, list(services))
