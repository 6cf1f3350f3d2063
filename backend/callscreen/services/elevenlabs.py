import logging
from typing import Any, Dict, Optional, Protocol

import requests

from callscreen.core.config import Settings

logger = logging.getLogger(__name__)


class ConversationProviderError(Exception):
    pass


class ConversationProvider(Protocol):
    def get_conversation_details(self, conversation_id: str) -> Dict[str, Any]:
        ...


class ElevenLabsClient:
    def __init__(self, api_key: str, base_url: str, timeout: float = 15.0) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()

    def _headers(self) -> Dict[str, str]:
        return {"Accept": "application/json", "xi-api-key": self.api_key}

    def get_conversation_details(self, conversation_id: str) -> Dict[str, Any]:
        url = f"{self.base_url}/convai/conversations/{conversation_id}"
        logger.info("Fetching conversation %s from ElevenLabs", conversation_id)
        try:
            response = self.session.get(url, headers=self._headers(), timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as exc:
            raise ConversationProviderError(f"Failed to fetch conversation {conversation_id}: {exc}") from exc
        except ValueError as exc:
            raise ConversationProviderError(f"Conversation {conversation_id} returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise ConversationProviderError(f"Conversation {conversation_id} returned unexpected payload")
        return payload


def build_conversation_provider(settings: Settings) -> Optional[ConversationProvider]:
    if not settings.elevenlabs_api_key:
        logger.info("ELEVENLABS_API_KEY not configured - using webhook payloads as-is")
        return None
    return ElevenLabsClient(
        api_key=settings.elevenlabs_api_key,
        base_url=settings.elevenlabs_base_url,
        timeout=settings.http_timeout_seconds,
    )
