# v0_mcp/oauth/endpoints.py
import html
import json
import logging
import secrets
import time
from typing import Annotated, Optional
from urllib.parse import urlencode
from uuid import uuid4

from fastapi import APIRouter, Depends, Form, Query, Request, Response, status
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from pydantic import ValidationError as PydanticValidationError

from .. import analytics
from ..dependencies import get_base_url, get_oauth_provider
from .errors import InvalidRedirectUriError, InvalidRequestError, OAuthError, ServerError
from .models import (
    AuthorizationServerMetadata,
    ClientRegistrationRequest,
    ClientRegistrationResponse,
    DEFAULT_SCOPE,
    IntrospectionResponse,
    ProtectedResourceMetadata,
    TokenResponse,
)
from .provider import V0OAuthProvider, build_redirect_uri

logger = logging.getLogger(__name__)
oauth_router = APIRouter()


def _is_http_redirect(uri: str) -> bool:
    return uri.startswith("http://") or uri.startswith("https://")


UNSAFE_REDIRECT_SCHEMES = ("javascript", "data", "vbscript")


def ensure_safe_redirect_uri(uri: Optional[str]) -> None:
    """Rejects script-capable schemes. Whitespace and control chars are dropped before the scheme is compared."""
    if not uri:
        return
    scheme, sep, _ = "".join(ch for ch in uri if ch > " ").partition(":")
    if sep and scheme.lower() in UNSAFE_REDIRECT_SCHEMES:
        logger.warning(f"Rejected redirect_uri with scheme '{scheme.lower()}'.")
        raise InvalidRequestError("redirect_uri uses a disallowed scheme")



_AUTHORIZE_FORM_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head><meta charset="utf-8"><title>Connect v0 to your MCP client</title></head>
<body>
  <h1>Authorize {client_id}</h1>
  <p>Requested scope: <code>{scope}</code></p>
  <form method="post" action="{action}">
    {hidden_fields}
    <label for="v0_api_key">v0 API key</label>
    <input id="v0_api_key" name="v0_api_key" type="password" autocomplete="off" required>
    <button type="submit">Authorize</button>
  </form>
</body>
</html>"""

_SUCCESS_PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head><meta charset="utf-8"><title>Authorization complete</title></head>
<body>
  <h1>Authorization complete</h1>
  <p>Returning to your application. If nothing happens, <a id="continue" href="{target_attr}">continue here</a>.</p>
  <script>window.location.href = {target_js};</script>
</body>
</html>"""


@oauth_router.get(
    "/.well-known/oauth-authorization-server",
    response_model=AuthorizationServerMetadata,
    name="oauth_metadata",
)
async def get_oauth_metadata(
    base_url: Annotated[str, Depends(get_base_url)],
    oauth_provider: Annotated[V0OAuthProvider, Depends(get_oauth_provider)],
):
    """OAuth discovery endpoint providing server metadata."""
    return oauth_provider.get_authorization_server_metadata(base_url)


@oauth_router.get(
    "/.well-known/oauth-protected-resource",
    response_model=ProtectedResourceMetadata,
    name="oauth_protected_resource",
)
@oauth_router.get(
    "/mcp/.well-known/oauth-protected-resource",
    response_model=ProtectedResourceMetadata,
    include_in_schema=False,
)
async def get_protected_resource_metadata(
    base_url: Annotated[str, Depends(get_base_url)],
    oauth_provider: Annotated[V0OAuthProvider, Depends(get_oauth_provider)],
):
    return oauth_provider.get_protected_resource_metadata(f"{base_url}/mcp", base_url)


@oauth_router.get("/authorize", name="oauth_authorize_get", response_class=HTMLResponse)
async def authorize_get(
    request: Request,
    client_id: Annotated[Optional[str], Query()] = None,
    redirect_uri: Annotated[Optional[str], Query()] = None,
    code_challenge: Annotated[Optional[str], Query()] = None,
    code_challenge_method: Annotated[Optional[str], Query()] = None,
    scope: Annotated[Optional[str], Query()] = None,
    state: Annotated[Optional[str], Query()] = None,
    resource: Annotated[Optional[str], Query()] = None,
):
    """Renders the credential-collection form for an authorization request."""
    logger.info(f"OAuth authorize request: client_id='{client_id}', redirect_uri='{redirect_uri}', state='{state}'")

    if not client_id or not redirect_uri or not code_challenge:
        raise InvalidRequestError("Missing required parameters")
    ensure_safe_redirect_uri(redirect_uri)

    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "code_challenge": code_challenge,
        "code_challenge_method": code_challenge_method or "S256",
        "scope": scope or DEFAULT_SCOPE,
        "state": state,
        "resource": resource,
    }
    await analytics.track_auth_started(client_id, params["scope"])

    hidden_fields = "\n    ".join(
        f'<input type="hidden" name="{name}" value="{html.escape(value, quote=True)}">'
        for name, value in params.items()
        if value
    )
    page = _AUTHORIZE_FORM_TEMPLATE.format(
        client_id=html.escape(client_id),
        scope=html.escape(params["scope"]),
        action=html.escape(str(request.url_for("oauth_authorize_post").path), quote=True),
        hidden_fields=hidden_fields,
    )
    return HTMLResponse(page)


@oauth_router.post("/authorize", name="oauth_authorize_post", response_class=RedirectResponse)
async def authorize_post(
    base_url: Annotated[str, Depends(get_base_url)],
    oauth_provider: Annotated[V0OAuthProvider, Depends(get_oauth_provider)],
    client_id: Annotated[Optional[str], Form()] = None,
    redirect_uri: Annotated[Optional[str], Form()] = None,
    code_challenge: Annotated[Optional[str], Form()] = None,
    code_challenge_method: Annotated[Optional[str], Form()] = None,
    scope: Annotated[Optional[str], Form()] = None,
    state: Annotated[Optional[str], Form()] = None,
    resource: Annotated[Optional[str], Form()] = None,
    v0_api_key: Annotated[Optional[str], Form()] = None,
):
    """Issues an authorization code for the submitted API key and redirects back to the client."""
    logger.info(f"Authorize POST request: client_id='{client_id}', redirect_uri='{redirect_uri}', state='{state}'")

    if not v0_api_key:
        await analytics.track_auth_failure(client_id or "", "missing_api_key")
        raise InvalidRequestError("V0 API key is required")
    ensure_safe_redirect_uri(redirect_uri)

    code = await oauth_provider.generate_authorization_code(
        client_id=client_id or "",
        redirect_uri=redirect_uri or "",
        code_challenge=code_challenge or "",
        code_challenge_method=code_challenge_method or "S256",
        scope=scope or DEFAULT_SCOPE,
        raw_api_key=v0_api_key,
    )

    callback_params = {"code": code, "state": state, "iss": base_url}

    # Custom schemes (e.g. cursor://) go through an HTML page that redirects client-side
    if not _is_http_redirect(redirect_uri):
        success_url = f"{base_url}/auth/success?" + urlencode(
            {k: v for k, v in {"redirect_uri": redirect_uri, **callback_params}.items() if v}
        )
        logger.info("Custom scheme redirect_uri; sending user agent to success page.")
        return RedirectResponse(url=success_url, status_code=status.HTTP_302_FOUND)

    target = build_redirect_uri(redirect_uri, callback_params)
    logger.info(f"Redirecting to client callback for client '{client_id}'.")
    return RedirectResponse(url=target, status_code=status.HTTP_302_FOUND)


@oauth_router.get("/auth/success", name="oauth_auth_success", response_class=HTMLResponse)
async def auth_success(
    redirect_uri: Annotated[str, Query()],
    code: Annotated[str, Query()],
    state: Annotated[Optional[str], Query()] = None,
    iss: Annotated[Optional[str], Query()] = None,
):
    """Final hop for custom-scheme redirect URIs, performed by the browser."""
    ensure_safe_redirect_uri(redirect_uri)
    target = build_redirect_uri(redirect_uri, {"code": code, "state": state, "iss": iss})
    page = _SUCCESS_PAGE_TEMPLATE.format(
        target_attr=html.escape(target, quote=True),
        # </ must not terminate the script element
        target_js=json.dumps(target).replace("</", "<\\/"),
    )
    return HTMLResponse(page)


@oauth_router.post("/token", response_model=TokenResponse, name="oauth_token")
async def token(
    oauth_provider: Annotated[V0OAuthProvider, Depends(get_oauth_provider)],
    grant_type: Annotated[Optional[str], Form()] = None,
    code: Annotated[Optional[str], Form()] = None,
    redirect_uri: Annotated[Optional[str], Form()] = None,
    client_id: Annotated[Optional[str], Form()] = None,
    code_verifier: Annotated[Optional[str], Form()] = None,
    refresh_token: Annotated[Optional[str], Form()] = None,
):
    """OAuth token endpoint for exchanging authorization codes and refreshing tokens."""
    logger.info(
        f"Token request: grant_type='{grant_type}', client_id='{client_id}', "
        f"code='{(code or '')[:10]}...'"
    )
    try:
        response = await oauth_provider.handle_token_request(
            grant_type=grant_type,
            code=code,
            client_id=client_id,
            redirect_uri=redirect_uri,
            code_verifier=code_verifier,
            refresh_token=refresh_token,
        )
    except OAuthError as e:
        logger.info(f"Token request rejected: {e.error}")
        await analytics.track_auth_failure(client_id or "", e.error)
        raise
    except Exception as e:
        logger.error(f"Unexpected error during /token: {e}", exc_info=True)
        raise ServerError("An unexpected error occurred while processing the token request.")

    await analytics.track_auth_success(client_id or "", response.scope)
    return response


@oauth_router.post("/introspect", response_model=IntrospectionResponse, response_model_exclude_none=True)
async def introspect(
    oauth_provider: Annotated[V0OAuthProvider, Depends(get_oauth_provider)],
    token: Annotated[Optional[str], Form()] = None,
):
    """RFC 7662 token introspection."""
    if not token:
        return IntrospectionResponse(active=False)
    access_token = await oauth_provider.validate_token(token)
    if access_token is None:
        return IntrospectionResponse(active=False)
    return IntrospectionResponse(
        active=True,
        client_id=access_token.client_id,
        scope=access_token.scope,
        exp=int(access_token.expires_at.timestamp()),
        iat=int(access_token.created_at.timestamp()),
    )


@oauth_router.post("/revoke")
async def revoke(
    oauth_provider: Annotated[V0OAuthProvider, Depends(get_oauth_provider)],
    token: Annotated[Optional[str], Form()] = None,
):
    """RFC 7009 revocation: 200 regardless of whether the token existed."""
    if not token:
        raise InvalidRequestError("Token is required")
    try:
        await oauth_provider.revoke_token(token)
    except Exception as e:
        logger.error(f"Token revocation error: {e}", exc_info=True)
        raise ServerError()
    logger.info(f"Access token revoked: {token[:10]}...")
    return Response(status_code=status.HTTP_200_OK)


@oauth_router.post("/register", status_code=status.HTTP_201_CREATED, response_model=ClientRegistrationResponse)
async def register_client(
    request: Request,
    base_url: Annotated[str, Depends(get_base_url)],
):
    """RFC 7591 dynamic client registration. Clients are public; nothing is persisted."""
    try:
        registration = ClientRegistrationRequest.model_validate(await request.json())
    except (ValueError, PydanticValidationError) as e:
        logger.warning(f"Client registration rejected: {e}")
        raise InvalidRequestError("Invalid client registration request")

    if not registration.redirect_uris:
        raise InvalidRedirectUriError()

    client_id = f"mcp-client-{uuid4()}"
    response = ClientRegistrationResponse(
        client_id=client_id,
        client_secret=str(uuid4()),
        client_id_issued_at=int(time.time()),
        redirect_uris=registration.redirect_uris,
        client_name=registration.client_name or "MCP Client",
        client_uri=registration.client_uri,
        registration_client_uri=f"{base_url}/oauth/clients/{client_id}",
        registration_access_token=secrets.token_urlsafe(32),
    )
    logger.info(f"Registered new client: {client_id}")
    return JSONResponse(response.model_dump(exclude_none=True), status_code=status.HTTP_201_CREATED)
