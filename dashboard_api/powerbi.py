"""Power BI embed-token relay.

Two upstream calls: an Azure AD client-credentials grant, then GenerateToken
on the report. Credentials stay server side; error payloads carry only
status information.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

AUTHORITY_TOKEN_URL = "https://login.microsoftonline.com/{tenant_id}/oauth2/v2.0/token"
POWER_BI_SCOPE = "https://analysis.windows.net/powerbi/api/.default"
GENERATE_TOKEN_URL = "https://api.powerbi.com/v1.0/myorg/groups/{workspace_id}/reports/{report_id}/GenerateToken"
REPORT_EMBED_URL = "https://app.powerbi.com/reportEmbed?reportId={report_id}&groupId={workspace_id}"
REQUEST_TIMEOUT = 20

TOKEN_ERROR_MESSAGE = "Failed to generate Power BI embed token"

ENV_VARS = {
    "client_id": "POWER_BI_CLIENT_ID",
    "tenant_id": "POWER_BI_TENANT_ID",
    "client_secret": "POWER_BI_CLIENT_SECRET",
    "workspace_id": "POWER_BI_WORKSPACE_ID",
    "report_id": "POWER_BI_REPORT_ID",
}


class EmbedTokenError(Exception):
    error = TOKEN_ERROR_MESSAGE

    def __init__(self, details: Optional[str] = None):
        self.details = details
        super().__init__(details or self.error)

    def to_payload(self) -> Dict[str, str]:
        payload = {"error": self.error}
        if self.details:
            payload["details"] = self.details
        return payload


class ConfigurationIncomplete(EmbedTokenError):
    error = "Power BI configuration is incomplete"

    def __init__(self, missing: List[str]):
        self.missing = missing
        super().__init__(None)


class UpstreamAuthFailure(EmbedTokenError):
    pass


class UpstreamTokenFailure(EmbedTokenError):
    pass


@dataclass(frozen=True)
class EmbedSettings:
    client_id: str = ""
    tenant_id: str = ""
    client_secret: str = ""
    workspace_id: str = ""
    report_id: str = ""

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "EmbedSettings":
        env = os.environ if environ is None else environ
        return cls(**{attr: (env.get(var) or "").strip() for attr, var in ENV_VARS.items()})

    def missing(self) -> List[str]:
        return [ENV_VARS[f.name] for f in fields(self) if not getattr(self, f.name)]


@dataclass(frozen=True)
class EmbedToken:
    embed_token: str
    embed_url: str
    report_id: str
    expiry: str

    def to_payload(self) -> Dict[str, str]:
        return {
            "embedToken": self.embed_token,
            "embedUrl": self.embed_url,
            "reportId": self.report_id,
            "expiry": self.expiry,
        }


def _status(resp: Any) -> str:
    reason = getattr(resp, "reason", "") or ""
    return f"{resp.status_code} {reason}".strip()


def request_access_token(settings: EmbedSettings, *, session: Any = requests) -> str:
    url = AUTHORITY_TOKEN_URL.format(tenant_id=settings.tenant_id)
    data = {
        "client_id": settings.client_id,
        "client_secret": settings.client_secret,
        "grant_type": "client_credentials",
        "scope": POWER_BI_SCOPE,
    }
    try:
        resp = session.post(url, data=data, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as exc:
        logger.warning("Azure AD token request failed: %s", type(exc).__name__)
        raise UpstreamAuthFailure(f"Failed to get Azure AD token: {type(exc).__name__}") from exc
    if not resp.ok:
        logger.warning("Azure AD token request rejected: %s", _status(resp))
        raise UpstreamAuthFailure(f"Failed to get Azure AD token: HTTP {resp.status_code}")
    try:
        token = (resp.json() or {}).get("access_token")
    except ValueError as exc:
        raise UpstreamAuthFailure("Failed to get Azure AD token: invalid JSON response") from exc
    if not token:
        raise UpstreamAuthFailure("Failed to get Azure AD token: no access_token in response")
    return token


def request_embed_token(settings: EmbedSettings, access_token: str, *, session: Any = requests) -> Dict[str, Any]:
    url = GENERATE_TOKEN_URL.format(workspace_id=settings.workspace_id, report_id=settings.report_id)
    headers = {"Authorization": f"Bearer {access_token}"}
    body = {"accessLevel": "View", "allowSaveAs": False}
    try:
        resp = session.post(url, headers=headers, json=body, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as exc:
        logger.warning("GenerateToken request failed: %s", type(exc).__name__)
        raise UpstreamTokenFailure(f"Failed to generate embed token: {type(exc).__name__}") from exc
    if not resp.ok:
        logger.warning("GenerateToken request rejected: %s", _status(resp))
        raise UpstreamTokenFailure(f"Failed to generate embed token: HTTP {resp.status_code}")
    try:
        return resp.json() or {}
    except ValueError as exc:
        raise UpstreamTokenFailure("Failed to generate embed token: invalid JSON response") from exc


def generate_embed_token(settings: Optional[EmbedSettings] = None, *, session: Any = requests) -> EmbedToken:
    settings = settings or EmbedSettings.from_env()
    missing = settings.missing()
    if missing:
        logger.error("Power BI configuration incomplete; missing %s", ", ".join(missing))
        raise ConfigurationIncomplete(missing)

    access_token = request_access_token(settings, session=session)
    embed = request_embed_token(settings, access_token, session=session)
    return EmbedToken(
        embed_token=str(embed.get("token") or ""),
        embed_url=REPORT_EMBED_URL.format(report_id=settings.report_id, workspace_id=settings.workspace_id),
        report_id=settings.report_id,
        expiry=str(embed.get("expiration") or ""),
    )
