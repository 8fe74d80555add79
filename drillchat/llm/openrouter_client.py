from typing import Any, Dict, List, Optional

import requests

from ..config import Settings, settings as default_settings
from ..errors import (
    ConfigurationError,
    UpstreamProtocolError,
    UpstreamResponseError,
    classify_upstream_error,
)
from ..utils.app_logging import get_logger

log = get_logger("llm.openrouter")


def reply_text(envelope: Dict[str, Any]) -> Optional[str]:
    """`choices[0].message.content` if it is a non-empty string, else None."""
    choices = envelope.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    return content if isinstance(content, str) and content else None


class OpenRouterClient:
    """
    Thin chat-completions client for OpenRouter.

    One POST per call, no retries. Every failure is raised as a DrillChatError
    subclass that already carries the status to show the caller.
    """

    def __init__(self, cfg: Optional[Settings] = None, session: Optional[requests.Session] = None):
        self.cfg = cfg or default_settings
        self.http = session or requests.Session()

    def headers(self) -> Dict[str, str]:
        if not self.cfg.openrouter_api_key:
            log.error("CRITICAL: OPENROUTER_API_KEY environment variable is not set.")
            raise ConfigurationError("Server configuration error: API Key is missing.")
        return {
            "Authorization": f"Bearer {self.cfg.openrouter_api_key}",
            "HTTP-Referer": self.cfg.site_url,
            "X-Title": self.cfg.site_name,
            "Content-Type": "application/json",
        }

    def complete(self, messages: List[Dict[str, str]]) -> Dict[str, Any]:
        """
        Send the conversation and return the provider's full JSON envelope.
        The envelope is guaranteed to carry a non-empty reply text.
        """
        headers = self.headers()
        payload = {
            "model": self.cfg.openrouter_model,
            "messages": messages,
            "max_tokens": self.cfg.openrouter_max_tokens,
        }
        log.info("Sending request to OpenRouter model: %s (Max Tokens: %d)",
                 self.cfg.openrouter_model, self.cfg.openrouter_max_tokens)
        try:
            resp = self.http.post(
                self.cfg.openrouter_url,
                headers=headers,
                json=payload,
                timeout=self.cfg.openrouter_timeout,
            )
        except requests.RequestException as e:
            log.error("OpenRouter request failed: %s", e)
            raise UpstreamProtocolError(f"Upstream API request failed: {e}") from e

        log.info({"event": "upstream_response", "status": resp.status_code,
                  "content_type": resp.headers.get("content-type")})
        return self.parse_response(resp)

    def parse_response(self, resp: requests.Response) -> Dict[str, Any]:
        status = resp.status_code
        content_type = resp.headers.get("content-type")
        if not content_type or "application/json" not in content_type:
            log.error("OpenRouter API returned non-JSON response. Status: %s. Content-Type: %s. Body: %s",
                      status, content_type, resp.text[:500])
            raise UpstreamProtocolError(
                f"Upstream API returned unexpected content type '{content_type}'. Status: {status}."
            )

        try:
            data = resp.json()
        except ValueError as e:
            log.error("Failed to parse OpenRouter response JSON: %s", e)
            raise UpstreamProtocolError(f"Upstream API returned invalid JSON. Status: {status}.") from e

        if not isinstance(data, dict):
            raise UpstreamResponseError("Received an unexpected response format from the AI provider.")

        error = data.get("error")
        if error:
            log.error("OpenRouter returned an error in the response body: %s", error)
            if not isinstance(error, dict):
                error = {"message": str(error)}
            code = error.get("code")
            cls = classify_upstream_error(code, error.get("type"))
            raise cls(error.get("message") or "Unknown error from API provider.", code=code)

        if not resp.ok:
            log.error("OpenRouter API HTTP error: %s %s", status, resp.reason)
            cls = classify_upstream_error(status, None)
            raise cls(
                f"Upstream API request failed with status {status}. {resp.reason or ''}".strip(),
                http_status=502 if status >= 500 else status,
                error="API Communication Error",
            )

        if reply_text(data) is None:
            log.error("Received successful status, but unexpected response structure from OpenRouter: %s", data)
            raise UpstreamResponseError("Received an unexpected response format from the AI provider.")

        usage = data.get("usage")
        if isinstance(usage, dict):
            log.info({"event": "llm_usage", "model": data.get("model", self.cfg.openrouter_model),
                      "prompt_tokens": usage.get("prompt_tokens"),
                      "completion_tokens": usage.get("completion_tokens"),
                      "total_tokens": usage.get("total_tokens")})
        return data


class OfflineChatClient:
    """
    Deterministic stand-in used when DEV_NO_LLM is set, so the app can be
    smoke-tested end to end without credentials or network.
    """

    model = "offline-stub"

    def complete(self, messages: List[Dict[str, str]]) -> Dict[str, Any]:
        question = next((m["content"] for m in reversed(messages) if m.get("role") == "user"), "")
        content = (
            "Offline mode: no model was called.\n\n"
            f"Question: {question}\n\n"
            "Hydrostatic pressure is $P = 0.052 \\times MW \\times TVD$.\n\n"
            '<!--TABLE_DATA:{"headers": ["MW (ppg)", "TVD (ft)", "P (psi)"], '
            '"rows": [[10, 10000, 5200], [12, 10000, 6240]], '
            '"title": "Sample hydrostatic pressures"}-->'
        )
        return {
            "id": "offline",
            "object": "chat.completion",
            "model": self.model,
            "choices": [
                {"index": 0, "finish_reason": "stop", "message": {"role": "assistant", "content": content}}
            ],
        }
