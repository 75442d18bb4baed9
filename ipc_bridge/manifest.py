"""Static manifest document served at /manifest.json."""

import json
from pathlib import Path
from typing import Any

from .config import Settings


def default_manifest(app_name: str, trust: dict[str, str] | None = None) -> dict[str, Any]:
    """Build the built-in web app manifest, with a babbage trust block when given."""
    manifest: dict[str, Any] = {
        "short_name": app_name,
        "name": app_name,
        "icons": [
            {
                "src": "favicon.ico",
                "sizes": "64x64 32x32 24x24 16x16",
                "type": "image/x-icon",
            }
        ],
        "start_url": ".",
        "display": "standalone",
        "theme_color": "#000000",
        "background_color": "#ffffff",
    }
    if trust is not None:
        manifest["babbage"] = {"trust": trust}
    return manifest


def trust_section(settings: Settings) -> dict[str, str] | None:
    """Trust block advertised to callers, or None without a configured public key."""
    if not settings.trust_public_key:
        return None

    return {
        "name": settings.app_name,
        "note": settings.trust_note,
        "icon": settings.trust_icon or f"https://localhost:{settings.port}/favicon.ico",
        "publicKey": settings.trust_public_key,
    }


def load_manifest(settings: Settings) -> dict[str, Any]:
    """
    Return the manifest served at /manifest.json.

    settings.manifest_path replaces the built-in document entirely. Otherwise
    the built-in one is used, carrying a trust block when trust_public_key is set.
    """
    if settings.manifest_path is None:
        return default_manifest(settings.app_name, trust_section(settings))

    manifest = json.loads(Path(settings.manifest_path).read_text(encoding="utf-8"))
    if not isinstance(manifest, dict):
        raise ValueError(f"Manifest {settings.manifest_path} must contain a JSON object")
    return manifest
