"""Settings mirror endpoints.

The browser keeps its own copy of the settings; these endpoints hold the
shared server-side copy that any browser can pull.
"""

import logging

from fastapi import APIRouter, Depends

from chatrelay.models.schemas import (
    KnowledgeFileSummary,
    SettingsDebug,
    SettingsDebugResponse,
    SettingsResponse,
    SettingsUpdate,
)
from chatrelay.store.settings_store import SettingsStore, get_settings_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("", response_model=SettingsResponse)
async def get_settings(store: SettingsStore = Depends(get_settings_store)) -> SettingsResponse:
    """Return the current server-side settings."""
    return SettingsResponse(data=store.get())


@router.post("", response_model=SettingsResponse)
async def save_settings(
    patch: SettingsUpdate,
    store: SettingsStore = Depends(get_settings_store),
) -> SettingsResponse:
    """Merge a partial settings object into the stored settings.

    Fields missing from the payload keep their stored values.

    Raises:
        409: The payload's ``revision`` is older than the stored one.
    """
    settings = store.update(patch)
    return SettingsResponse(message="Settings saved and shared with all users", data=settings)


@router.delete("", response_model=SettingsResponse)
async def reset_settings(store: SettingsStore = Depends(get_settings_store)) -> SettingsResponse:
    """Reset the stored settings to the defaults."""
    settings = store.reset()
    return SettingsResponse(message="Settings reset", data=settings)


@router.get("/debug", response_model=SettingsDebugResponse)
async def debug_settings(
    store: SettingsStore = Depends(get_settings_store),
) -> SettingsDebugResponse:
    """Summarize the stored settings without exposing the API key."""
    settings = store.get()
    return SettingsDebugResponse(
        debug=SettingsDebug(
            has_api_key=bool(settings.api_key),
            has_system_prompt=bool(settings.system_prompt),
            knowledge_file_count=len(settings.knowledge_base_files),
            knowledge_files=[
                KnowledgeFileSummary(
                    id=f.id, filename=f.filename, size=f.size, upload_time=f.upload_time
                )
                for f in settings.knowledge_base_files
            ],
            knowledge_url_count=len(settings.knowledge_base_urls),
            temperature=settings.temperature,
            model_name=settings.model_name,
            revision=settings.revision,
            last_updated=settings.last_updated,
        )
    )
