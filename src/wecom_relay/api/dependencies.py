"""Shared API dependencies for authentication and service access."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from wecom_relay.core.security import bearer_matches
from wecom_relay.core.settings import Settings, get_settings
from wecom_relay.services.forwarder import BackendForwarder, get_backend_forwarder
from wecom_relay.services.wecom import WeComClient, get_wecom_client

# Bearer scheme for backend -> relay calls; missing headers are handled below
bearer_scheme = HTTPBearer(auto_error=False)

SettingsDep = Annotated[Settings, Depends(get_settings)]


def get_wecom_client_dep() -> WeComClient:
    """Get WeComClient dependency for dependency injection."""
    return get_wecom_client()


def get_forwarder_dep() -> BackendForwarder:
    """Get BackendForwarder dependency for dependency injection."""
    return get_backend_forwarder()


WeComClientDep = Annotated[WeComClient, Depends(get_wecom_client_dep)]
ForwarderDep = Annotated[BackendForwarder, Depends(get_forwarder_dep)]


def require_proxy_auth(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    app_settings: SettingsDep,
) -> None:
    """Reject requests that do not carry ``Bearer <PROXY_SHARED_SECRET>``.

    Raises:
        HTTPException: 401 if the secret is unset or does not match.
    """
    authorization = (
        f"{credentials.scheme} {credentials.credentials}" if credentials is not None else None
    )
    if not bearer_matches(authorization, app_settings.proxy_shared_secret):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


ProxyAuthDep = Depends(require_proxy_auth)
