"""
whatsapp.py
Evolution API client (WhatsApp gateway) and its stored configuration.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import requests

import db

logger = logging.getLogger(__name__)

DEFAULT_INSTANCE = "sensei-primary"

SETTING_URL = "evolution_api_url"
SETTING_KEY = "evolution_api_key"
SETTING_INSTANCE = "evolution_instance_name"


class GatewayError(RuntimeError):
    """The gateway could not be reached or answered with an error."""


class GatewayNotConfigured(GatewayError):
    pass


@dataclass(frozen=True)
class GatewayConfig:
    base_url: str
    api_key: str
    instance_name: str = DEFAULT_INSTANCE

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url.strip() and self.api_key.strip())

    def client(self, session: requests.Session | None = None) -> "EvolutionClient":
        if not self.is_configured:
            raise GatewayNotConfigured("WhatsApp gateway URL and API key are required.")
        return EvolutionClient(self.base_url, self.api_key, session=session)


def load_config() -> GatewayConfig:
    return GatewayConfig(
        base_url=db.get_setting(SETTING_URL, "") or "",
        api_key=db.get_setting(SETTING_KEY, "") or "",
        instance_name=db.get_setting(SETTING_INSTANCE, DEFAULT_INSTANCE) or DEFAULT_INSTANCE,
    )


def save_config(config: GatewayConfig) -> None:
    db.set_setting(SETTING_URL, config.base_url.strip())
    db.set_setting(SETTING_KEY, config.api_key.strip())
    db.set_setting(SETTING_INSTANCE, config.instance_name.strip() or DEFAULT_INSTANCE)


class EvolutionClient:
    def __init__(self, base_url: str, api_key: str, session: requests.Session | None = None, timeout: int = 20):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    @property
    def headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json", "apikey": self.api_key}

    def _request(self, method: str, path: str, json: dict | None = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            r = self.session.request(method, url, headers=self.headers, json=json, timeout=self.timeout)
        except requests.RequestException as e:
            raise GatewayError(f"{method} {path} failed: {e}") from e
        if not 200 <= r.status_code < 300:
            raise GatewayError(f"{method} {path} returned HTTP {r.status_code}: {r.text}")
        if not r.content:
            return None
        try:
            return r.json()
        except ValueError:
            return r.text

    def create_instance(self, instance_name: str) -> Any:
        return self._request(
            "POST",
            "/instance/create",
            {"instanceName": instance_name, "qrcode": True, "integration": "WHATSAPP-BAILEYS"},
        )

    def connect_instance(self, instance_name: str) -> Any:
        """Returns the pairing payload (base64 QR code) for the instance."""
        return self._request("GET", f"/instance/connect/{instance_name}")

    def fetch_instances(self) -> list:
        try:
            return self._request("GET", "/instance/fetchInstances") or []
        except GatewayError:
            logger.exception("Error fetching instances")
            return []

    def connection_state(self, instance_name: str) -> Any:
        return self._request("GET", f"/instance/connectionState/{instance_name}")

    def delete_instance(self, instance_name: str) -> Any:
        return self._request("DELETE", f"/instance/delete/{instance_name}")

    def send_text(self, instance_name: str, number: str, text: str) -> Any:
        return self._request(
            "POST",
            f"/message/sendText/{instance_name}",
            {"number": number, "text": text, "delay": 1200, "linkPreview": True},
        )
