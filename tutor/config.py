import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


SOLUTION_MODES = ["similar", "step_by_step"]

LLM_API_KEY = os.getenv("LLM_API_KEY", "")
LLM_API_URL = os.getenv("LLM_API_URL", "https://ai.gateway.lovable.dev/v1/chat/completions")
LLM_MODEL_NAME = os.getenv("LLM_MODEL_NAME", "google/gemini-2.5-flash")
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))

# semantic | local
GRADING_STRATEGY = os.getenv("GRADING_STRATEGY", "semantic").strip().lower()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


@dataclass(frozen=True)
class GatewaySettings:
    api_key: str
    api_url: str
    model_name: str
    timeout: float = 60.0


def load_gateway_settings() -> GatewaySettings:
    if not LLM_API_KEY:
        raise RuntimeError("LLM_API_KEY is not configured")

    return GatewaySettings(
        api_key=LLM_API_KEY,
        api_url=LLM_API_URL,
        model_name=LLM_MODEL_NAME,
        timeout=LLM_TIMEOUT_SECONDS,
    )
