from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_EMBED_TOKEN_URL = "http://127.0.0.1:8000/api/powerbi-token"
POWERBI_CLIENT_JS = "https://cdn.jsdelivr.net/npm/powerbi-client@2.23.1/dist/powerbi.min.js"
REQUEST_TIMEOUT = 20
# powerbi-client enum values: TokenType.Embed, BackgroundType.Transparent
TOKEN_TYPE_EMBED = 1
BACKGROUND_TRANSPARENT = 1


class EmbedUnavailable(Exception):
    def __init__(self, error: str, details: Optional[str] = None):
        self.error = error
        self.details = details
        super().__init__(f"{error}: {details}" if details else error)


@dataclass(frozen=True)
class EmbedConfig:
    embed_token: str
    embed_url: str
    report_id: str
    expiry: str = ""


def embed_token_url() -> str:
    return os.environ.get("EMBED_TOKEN_URL") or DEFAULT_EMBED_TOKEN_URL


def fetch_embed_config(url: Optional[str] = None, *, timeout: float = REQUEST_TIMEOUT) -> EmbedConfig:
    """GET the token relay and return the report embed settings."""
    url = url or embed_token_url()
    try:
        resp = requests.get(url, timeout=timeout)
    except requests.RequestException as exc:
        logger.warning("Embed token relay unreachable at %s: %s", url, exc)
        raise EmbedUnavailable("Power BI token service is unreachable", type(exc).__name__) from exc

    try:
        payload = resp.json()
    except ValueError:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}
    if not resp.ok:
        raise EmbedUnavailable(
            str(payload.get("error") or f"Token request failed ({resp.status_code})"),
            payload.get("details"),
        )
    try:
        return EmbedConfig(
            embed_token=str(payload["embedToken"]),
            embed_url=str(payload["embedUrl"]),
            report_id=str(payload["reportId"]),
            expiry=str(payload.get("expiry") or ""),
        )
    except KeyError as exc:
        raise EmbedUnavailable("Malformed token response", f"missing {exc.args[0]}") from exc


def embed_html(config: EmbedConfig, *, height: int = 600) -> str:
    settings = {
        "type": "report",
        "id": config.report_id,
        "embedUrl": config.embed_url,
        "accessToken": config.embed_token,
        "tokenType": TOKEN_TYPE_EMBED,
        "settings": {
            "panes": {"filters": {"visible": False}, "pageNavigation": {"visible": True}},
            "background": BACKGROUND_TRANSPARENT,
        },
    }
    settings_js = json.dumps(settings).replace("</", "<\\/")
    return f"""
<div id="powerbi-report" class="powerbi-report" style="height:{int(height)}px;"></div>
<script src="{POWERBI_CLIENT_JS}"></script>
<script>
  const container = document.getElementById("powerbi-report");
  const report = powerbi.embed(container, {settings_js});
  report.on("loaded", function () {{ console.log("Report loaded"); }});
  report.on("error", function (event) {{ console.error("Error:", event.detail); }});
</script>
"""
