"""API Routers package

Routers are organized by feature domain.
"""

from . import (
    activities_router,
    auth_router,
    channels_router,
    dashboard_router,
    predictions_router,
    settings_router,
)

__all__ = [
    "activities_router",
    "auth_router",
    "channels_router",
    "dashboard_router",
    "predictions_router",
    "settings_router",
]
