"""
HTTP client for the external renderer.
One run = POST /run (returns run_id), then GET /run?run_id=... until a terminal
status; the output asset is served from the renderer's CDN.
"""
import logging
from typing import Any

import httpx

from storybook.services.rendering.base import RenderConfigError, RenderError

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = frozenset({"processing", "not-started", "running", "uploading", "queued"})
SUCCESS_STATUSES = frozenset({"success", "complete"})
FAILED_STATUS = "failed"


def resolve_output_filename(payload: dict[str, Any], default: str) -> str:
    """Filename of the first output: explicit `filename`, else last segment of its `url`."""
    outputs = payload.get("outputs") or []
    if isinstance(outputs, list) and outputs and isinstance(outputs[0], dict):
        first = outputs[0]
        filename = first.get("filename")
        if isinstance(filename, str) and filename.strip():
            return filename.strip()
        url = first.get("url")
        if isinstance(url, str) and url.strip():
            segment = url.split("?", 1)[0].rstrip("/").rsplit("/", 1)[-1]
            if segment:
                return segment
    return default


class RenderClient:
    def __init__(self, config: dict):
        self.api_url = (config.get("api_url") or "").rstrip("/")
        self.api_key = config.get("api_key")
        self.deployment_id = config.get("deployment_id")
        self.cdn_base_url = (config.get("cdn_base_url") or "").rstrip("/")
        self.default_filename = config.get("default_filename", "ComfyUI_00001_.png")
        self.timeout = config.get("timeout", 60.0)

    @classmethod
    def from_settings(cls, settings: Any) -> "RenderClient":
        return cls({
            "api_url": settings.render_api_url,
            "api_key": settings.render_api_key,
            "deployment_id": settings.render_deployment_id,
            "cdn_base_url": settings.render_cdn_base_url,
            "default_filename": settings.render_default_filename,
            "timeout": settings.render_timeout,
        })

    def is_available(self) -> bool:
        return bool(self.api_key and self.deployment_id)

    def _headers(self) -> dict[str, str]:
        if not self.is_available():
            raise RenderConfigError("Image Generation API Key is not configured.")
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def trigger(self, prompt: str) -> str:
        """Start one render; returns the renderer's run id."""
        headers = self._headers()
        payload = {"deployment_id": self.deployment_id, "inputs": {"prompt": prompt}}
        with httpx.Client(timeout=self.timeout) as client:
            response = client.post(f"{self.api_url}/run", headers=headers, json=payload)
        if response.is_error:
            raise RenderError(
                f"Failed to trigger image generation: HTTP {response.status_code}",
                detail={"http_status": response.status_code, "body": response.text[:500]},
            )
        try:
            data = response.json()
        except ValueError as e:
            raise RenderError("Renderer returned a non-JSON trigger response.") from e
        run_id = data.get("run_id") if isinstance(data, dict) else None
        if not run_id:
            raise RenderError("Renderer did not return a run_id.", detail={"body": str(data)[:500]})
        return str(run_id)

    def get_run(self, run_id: str) -> dict[str, Any]:
        headers = self._headers()
        with httpx.Client(timeout=self.timeout) as client:
            response = client.get(f"{self.api_url}/run", headers=headers, params={"run_id": run_id})
        if response.is_error:
            raise RenderError(
                f"Failed to poll run {run_id}: HTTP {response.status_code}",
                detail={"http_status": response.status_code},
            )
        try:
            data = response.json()
        except ValueError as e:
            raise RenderError(f"Renderer returned a non-JSON status for run {run_id}.") from e
        if not isinstance(data, dict):
            raise RenderError(f"Renderer returned an unexpected status payload for run {run_id}.")
        return data

    def asset_url(self, run_id: str, filename: str) -> str:
        return f"{self.cdn_base_url}/{run_id}/{filename}"

    def download(self, url: str) -> bytes:
        with httpx.Client(timeout=self.timeout, follow_redirects=True) as client:
            response = client.get(url, headers={"Cache-Control": "no-cache"})
        if response.is_error:
            raise RenderError(
                f"Failed to download generated image: HTTP {response.status_code}",
                detail={"http_status": response.status_code, "url": url},
            )
        return response.content
