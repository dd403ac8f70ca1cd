# llm_insight.py
from __future__ import annotations
import json, logging, os
from typing import Any, Dict, List, Optional

import requests
from groq import Groq, GroqError
from openai import OpenAI, OpenAIError

logger = logging.getLogger(__name__)

PROVIDERS = ("openai", "deepseek", "groq")

OPENAI_SYSTEM_PROMPT = "You are an AI that analyzes water quality datasets."

ANALYST_SYSTEM_PROMPT = " ".join([
    "You are a data analyst for river water quality.",
    "You receive a compact JSON summary from sensors.",
    "Be concise, structured, and specific. Use bullet points.",
])

DEEPSEEK_URL = "https://api.deepseek.com/v1/chat/completions"
OPENAI_CONTEXT_CHARS = 4000
NO_CONTENT = "No content."


class InsightError(Exception):
    status = 500

    def __init__(self, message: str, detail: Any = None):
        super().__init__(message)
        self.detail = detail


class MissingApiKeyError(InsightError):
    status = 500


class ProviderFailedError(InsightError):
    status = 502


class UnknownProviderError(InsightError):
    status = 400


def _get_secret(name: str, default: str = "") -> str:
    return os.getenv(name, default)


def _require_key(name: str) -> str:
    key = _get_secret(name)
    if not key:
        raise MissingApiKeyError(f"Missing {name}")
    return key


def safe_json(text: str) -> Any:
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return text


# ---- Prompt builders ----

def openai_user_message(prompt: str, payload: Any) -> str:
    context = json.dumps(payload, ensure_ascii=False, separators=(",", ":"), default=str)
    return f"{prompt}\n\nData context:\n{context[:OPENAI_CONTEXT_CHARS]}"


def analyst_user_message(prompt: str, payload: Any, category: Optional[str] = None) -> str:
    return "\n".join([
        f"Category: {category}" if category else "",
        f"Prompt: {prompt}",
        "JSON data summary:",
        "```json",
        json.dumps(payload, ensure_ascii=False, indent=2, default=str),
        "```",
    ])


def _analyst_messages(prompt: str, payload: Any, category: Optional[str]) -> List[Dict[str, str]]:
    return [{"role": "system", "content": ANALYST_SYSTEM_PROMPT},
            {"role": "user", "content": analyst_user_message(prompt, payload, category)}]


# ---- Providers ----

def ask_openai(prompt: str, payload: Any, client: Optional[OpenAI] = None) -> str:
    if client is None:
        client = OpenAI(api_key=_require_key("OPENAI_API_KEY"))
    model_name = _get_secret("OPENAI_MODEL", "gpt-4o-mini")
    try:
        resp = client.chat.completions.create(
            model=model_name,
            temperature=0.3,
            messages=[{"role": "system", "content": OPENAI_SYSTEM_PROMPT},
                      {"role": "user", "content": openai_user_message(prompt, payload)}],
        )
    except OpenAIError as e:
        raise ProviderFailedError("OpenAI API failed", detail=str(e)) from e
    answer = (resp.choices[0].message.content or "").strip() if resp.choices else ""
    return answer or NO_CONTENT


def ask_deepseek(prompt: str, payload: Any, category: Optional[str] = None,
                 session: Optional[requests.Session] = None) -> str:
    api_key = _require_key("DEEPSEEK_API_KEY")
    http = session or requests
    body = {
        "model": _get_secret("DEEPSEEK_MODEL", "deepseek-chat"),
        "messages": _analyst_messages(prompt, payload, category),
        "temperature": 0.3,
        "max_tokens": 800,
    }
    try:
        res = http.post(
            _get_secret("DEEPSEEK_URL", DEEPSEEK_URL),
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            json=body,
            timeout=60,
        )
    except requests.RequestException as e:
        raise ProviderFailedError("DeepSeek API failed", detail=str(e)) from e

    # keep the raw text so it can be surfaced on failure
    text = res.text
    if not res.ok:
        logger.error("DeepSeek answered %d", res.status_code)
        raise ProviderFailedError("DeepSeek API failed", detail=safe_json(text))

    data = safe_json(text)
    try:
        answer = data["choices"][0]["message"]["content"].strip()
    except (KeyError, IndexError, TypeError, AttributeError):
        answer = ""
    return answer or NO_CONTENT


def ask_groq(prompt: str, payload: Any, category: Optional[str] = None,
             client: Optional[Groq] = None) -> str:
    if client is None:
        client = Groq(api_key=_require_key("GROQ_API_KEY"))
    try:
        resp = client.chat.completions.create(
            model=_get_secret("GROQ_MODEL", "llama-3.3-70b-versatile"),
            temperature=0.3,
            max_tokens=800,
            messages=_analyst_messages(prompt, payload, category),
        )
    except GroqError as e:
        raise ProviderFailedError("Groq API failed", detail=str(e)) from e
    return (resp.choices[0].message.content or "").strip() or NO_CONTENT


def generate_insight(provider: str, prompt: str, payload: Any, category: Optional[str] = None) -> str:
    provider = (provider or "openai").lower()
    logger.info("Insight request provider=%s category=%s", provider, category)
    if provider == "openai":
        return ask_openai(prompt, payload)
    if provider == "deepseek":
        return ask_deepseek(prompt, payload, category)
    if provider == "groq":
        return ask_groq(prompt, payload, category)
    raise UnknownProviderError("Invalid provider")
