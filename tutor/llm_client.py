import logging
from typing import Any, Dict, List, Optional, Union

import requests

from .config import GatewaySettings, load_gateway_settings

logger = logging.getLogger(__name__)

UserContent = Union[str, List[Dict[str, Any]]]


class UpstreamError(Exception):
    """The LLM gateway could not produce a usable completion."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class LLMClient:
    def __init__(self, settings: GatewaySettings):
        self.settings = settings

    def generate(self, system_prompt: str, user_content: UserContent, temperature: Optional[float] = None) -> str:
        headers = {
            "Authorization": f"Bearer {self.settings.api_key}",
            "Content-Type": "application/json",
        }

        payload: Dict[str, Any] = {
            "model": self.settings.model_name,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
        }
        if temperature is not None:
            payload["temperature"] = temperature

        try:
            res = requests.post(
                self.settings.api_url,
                headers=headers,
                json=payload,
                timeout=self.settings.timeout,
            )
        except requests.RequestException as e:
            logger.error("LLM gateway request failed: %s", e)
            raise UpstreamError(f"AI gateway unreachable: {e}") from e

        if res.status_code != 200:
            logger.error("LLM gateway error status=%s body=%s", res.status_code, res.text)
            raise UpstreamError(f"AI API error: {res.text}", status_code=res.status_code)

        try:
            data = res.json()
        except ValueError as e:
            logger.error("LLM gateway returned a non-JSON body: %s", res.text)
            raise UpstreamError("AI gateway returned an unreadable response") from e

        if not isinstance(data, dict) or not data.get("choices"):
            logger.error("Unexpected LLM gateway response: %s", data)
            raise UpstreamError("AI gateway returned no choices")

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            logger.error("Malformed LLM gateway choice: %s", data["choices"])
            raise UpstreamError("AI gateway returned a malformed choice") from e

        return require_text(content)


def require_text(content: Any) -> str:
    if not isinstance(content, str):
        logger.error("LLM gateway returned non-text content: %r", content)
        raise UpstreamError("AI gateway returned an empty completion")
    return content


_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    global _client
    if _client is None:
        _client = LLMClient(load_gateway_settings())
    return _client
