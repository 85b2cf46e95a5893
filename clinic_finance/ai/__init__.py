import json
import os
import urllib.request
import logging
from dataclasses import dataclass
from typing import List, Protocol

from clinic_finance.core.models import Transaction, serialize_transactions
from huggingface_hub import InferenceClient
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)

_OLLAMA_URL = "http://localhost:11434/api/chat"
_OPENAI_URL = "https://api.openai.com/v1/chat/completions"
_GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

# Shown instead of the analysis whenever the provider fails or is not configured.
INSIGHTS_UNAVAILABLE = (
    "Errore nella comunicazione con l'assistente AI. "
    "Assicurati che l'API KEY sia configurata."
)
EMPTY_ANALYSIS = "Non è stato possibile generare un'analisi al momento."


class LLMProvider(Protocol):
    """A minimal protocol all concrete providers must implement."""

    def generate(self, messages: List[dict]) -> str:  # noqa: D401 – keep simple signature
        """Return the model reply given a list-of-dicts chat history."""


@dataclass
class LLMClient:
    """Simple client that delegates chat requests to an LLM provider."""
    provider: LLMProvider | None = None

    def __post_init__(self) -> None:
        if self.provider is None:
            self.provider = get_provider_from_env()

    def chat(self, messages: List[dict]) -> str:
        return self.provider.generate(messages)


def _post_json(label: str, url: str, payload: dict, headers: dict | None = None) -> dict:
    """POST ``payload`` as JSON and return the decoded reply, with debug logs."""
    data = json.dumps(payload).encode()
    req = urllib.request.Request(url, data=data, method="POST")
    req.add_header("Content-Type", "application/json")
    for key, value in (headers or {}).items():
        req.add_header(key, value)
    logger.debug("%s ▶ POST %s", label, url)
    with urllib.request.urlopen(req) as resp:
        raw = resp.read().decode()
    logger.debug("%s ◀ %s", label, raw)
    return json.loads(raw)


# -----------------------------------------------------------------------------
# Google Gemini (generateContent REST endpoint)
# -----------------------------------------------------------------------------

@dataclass
class GeminiProvider:
    model: str
    api_key: str
    url: str = _GEMINI_URL

    def generate(self, messages: List[dict]) -> str:
        system = [m["content"] for m in messages if m["role"] == "system"]
        payload = {
            "contents": [
                {"role": "user", "parts": [{"text": m["content"]}]}
                for m in messages
                if m["role"] != "system"
            ],
        }
        if system:
            payload["systemInstruction"] = {"parts": [{"text": "\n".join(system)}]}

        resp_data = _post_json(
            "Gemini",
            self.url.format(model=self.model),
            payload,
            {"x-goog-api-key": self.api_key},
        )
        candidates = resp_data.get("candidates") or []
        if not candidates:
            return ""
        parts = candidates[0].get("content", {}).get("parts", [])
        return "".join(part.get("text", "") for part in parts).strip()


# -----------------------------------------------------------------------------
# Hugging Face Inference API provider
# -----------------------------------------------------------------------------

@dataclass
class HuggingFaceProvider:
    model: str
    token: str | None = None
    inference_provider: str | None = None

    def __post_init__(self) -> None:
        # Let huggingface_hub route the model when no inference provider is pinned.
        kwargs = {"api_key": self.token}
        if self.inference_provider:
            kwargs["provider"] = self.inference_provider
        self._client = InferenceClient(**kwargs)

    def generate(self, messages: List[dict]) -> str:
        out = self._client.chat_completion(messages=messages, model=self.model)
        return (out.choices[0].message.content or "").strip()


# -----------------------------------------------------------------------------
# OpenAI-compatible Chat Completions provider
# -----------------------------------------------------------------------------

@dataclass
class OpenAIProvider:
    model: str
    api_key: str
    url: str = _OPENAI_URL

    def generate(self, messages: List[dict]) -> str:
        resp_data = _post_json(
            "OpenAI",
            self.url,
            {"model": self.model, "messages": messages},
            {"Authorization": f"Bearer {self.api_key}"},
        )
        choices = resp_data.get("choices") or []
        if not choices:
            return ""
        return (choices[0].get("message", {}).get("content") or "").strip()


# -----------------------------------------------------------------------------
# Ollama provider (local models)
# -----------------------------------------------------------------------------

@dataclass
class OllamaProvider:
    model: str
    url: str = _OLLAMA_URL

    def generate(self, messages: List[dict]) -> str:
        resp_data = _post_json("Ollama", self.url, {"model": self.model, "messages": messages, "stream": False})

        # /api/chat returns either {'message': str} or {'message': {'content': str, ...}}
        msg = resp_data.get("message", "")
        if isinstance(msg, dict):
            msg = msg.get("content", "")
        if not isinstance(msg, str):
            raise RuntimeError(f"Unexpected Ollama response format: {resp_data}")
        return msg.strip()


class BaseAIOutput(ABC):
    """Composable layer for building prompts and parsing LLM responses."""

    @abstractmethod
    def build_messages(self, transactions: List[Transaction]) -> List[dict]:
        """Return chat messages describing the task."""

    def post_process(self, response: str) -> str:
        return response or EMPTY_ANALYSIS

    def generate(self, transactions: List[Transaction], client: LLMClient | None = None) -> str:
        try:
            client = client or LLMClient()
            out = client.chat(self.build_messages(transactions))
        except Exception as e:
            logger.error("Insight request failed: %s", e)
            return INSIGHTS_UNAVAILABLE
        return self.post_process(out)


class BudgetInsights(BaseAIOutput):
    """Financial health review of a medical office, written in Italian."""

    def build_messages(self, transactions: List[Transaction]) -> List[dict]:
        data = json.dumps(serialize_transactions(transactions), indent=2, ensure_ascii=False)
        return [
            {
                "role": "system",
                "content": "Sei un consulente finanziario esperto in gestione di studi medici.",
            },
            {
                "role": "user",
                "content": (
                    "Analizza le seguenti transazioni finanziarie di uno studio medico:\n"
                    f"{data}\n\n"
                    "Fornisci un'analisi in formato Markdown che includa:\n"
                    "1. Una sintesi dello stato di salute finanziario.\n"
                    "2. Tre suggerimenti specifici per ridurre le spese o aumentare l'efficienza.\n"
                    "3. Un commento sul bilancio tra entrate e uscite.\n"
                    "Rispondi in italiano con un tono professionale e rassicurante."
                ),
            },
        ]


# -----------------------------------------------------------------------------
# Helper utilities
# -----------------------------------------------------------------------------

def get_provider_from_env() -> LLMProvider:
    provider = os.environ.get("CLINIC_FINANCE_LLM_PROVIDER", "gemini").lower()
    model = os.environ.get("CLINIC_FINANCE_LLM_MODEL")

    if provider == "openai":
        api_key = os.environ.get("OPENAI_API_KEY")
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY not set")
        url = os.environ.get("OPENAI_URL", _OPENAI_URL)
        return OpenAIProvider(model=model or "gpt-4o-mini", api_key=api_key, url=url)

    if provider == "ollama":
        url = os.environ.get("OLLAMA_URL", _OLLAMA_URL)
        return OllamaProvider(model=model or "phi3:mini", url=url)

    if provider == "huggingface":
        token = os.environ.get("HF_API_TOKEN")
        return HuggingFaceProvider(
            model=model or "Qwen/Qwen3-32B",
            token=token,
            inference_provider=os.environ.get("CLINIC_FINANCE_HF_PROVIDER"),
        )

    # Default → Gemini
    api_key = os.environ.get("GEMINI_API_KEY") or os.environ.get("API_KEY")
    if not api_key:
        raise RuntimeError("API_KEY (or GEMINI_API_KEY) not set")
    return GeminiProvider(model=model or "gemini-2.5-flash", api_key=api_key)


def request_insights(transactions: List[Transaction], provider: LLMProvider | None = None) -> str:
    """Return the narrative analysis, or a fixed placeholder when the call fails."""
    client = LLMClient(provider) if provider is not None else None
    return BudgetInsights().generate(transactions, client)
