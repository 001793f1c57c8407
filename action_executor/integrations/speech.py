from __future__ import annotations

from typing import Optional

import httpx

from action_executor.integrations.http import request_json


class SpeechSynthesizer:
    def synthesize(self, text: str) -> Optional[str]:
        raise NotImplementedError


class StubSpeechSynthesizer(SpeechSynthesizer):
    def synthesize(self, text: str) -> Optional[str]:
        return None


class HttpSpeechSynthesizer(SpeechSynthesizer):
    def __init__(
        self,
        *,
        base_url: str,
        bearer_token: Optional[str] = None,
        speak_path: str = "/v1/speak",
        timeout_seconds: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._bearer_token = bearer_token
        self._speak_path = speak_path
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    def synthesize(self, text: str) -> Optional[str]:
        headers = {"Content-Type": "application/json"}
        if self._bearer_token:
            headers["Authorization"] = f"Bearer {self._bearer_token}"
        data = request_json(
            "POST",
            f"{self._base_url}{self._speak_path}",
            service="Speech API",
            timeout_seconds=self._timeout_seconds,
            transport=self._transport,
            json={"text": text},
            headers=headers,
        )
        return data.get("audio_url") or data.get("audioUrl")
