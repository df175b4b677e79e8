"""Health check, status, reload and settings endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from mineagent import storage
from mineagent.runtime import Runtime

from .deps import get_runtime

router = APIRouter()


def _masked(config: dict[str, Any]) -> dict[str, Any]:
    cloudflare = dict(config["cloudflare"])
    if cloudflare.get("cf_key"):
        cloudflare["cf_key"] = "********"
    return {**config, "cloudflare": cloudflare}


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/status")
async def status(runtime: Runtime = Depends(get_runtime)):
    """Indexed commands and presets, active sessions, version."""
    return runtime.status()


@router.post("/reload")
async def reload(target: str | None = None, runtime: Runtime = Depends(get_runtime)):
    """Reload config and/or re-index the preset workspace."""
    try:
        done = runtime.reload(target)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {"reloaded": done}


@router.get("/settings")
async def get_settings():
    """Get agent settings (the API token is masked)."""
    return _masked(storage.get_config())


@router.patch("/settings")
async def update_settings(body: dict, runtime: Runtime = Depends(get_runtime)):
    """Update agent settings (partial merge) and apply them."""
    config = storage.update_config(body)
    runtime.reload("config")
    return _masked(config)
