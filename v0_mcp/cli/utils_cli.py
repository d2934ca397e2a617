# v0_mcp/cli/utils_cli.py
import json
from typing import Any, Dict, List, Optional, Union

import requests
import typer
from typing_extensions import Annotated

from ..oauth.pkce import (
    DEFAULT_VERIFIER_LENGTH,
    MAX_VERIFIER_LENGTH,
    MIN_VERIFIER_LENGTH,
    SUPPORTED_CHALLENGE_METHODS,
    generate_pkce_code_challenge,
    generate_pkce_code_verifier,
)

app = typer.Typer(
    name="utils",
    help="Helpers for exercising the OAuth flow by hand.",
    no_args_is_help=True
)


def make_api_request(
    method: str,
    endpoint: str,
    json_payload: Optional[Dict[str, Any]] = None,
    params_payload: Optional[Dict[str, Any]] = None,
    expected_status: Union[int, List[int]] = 200,
    expect_json_response: bool = True
) -> Any:
    """
    Makes an HTTP API request against the server and echoes the exchange.

    Sends the admin API key when one is configured.
    """
    from .config import V0_MCP_CLI_API_BASE_URL, V0_MCP_CLI_ADMIN_API_KEY

    full_url = f"{V0_MCP_CLI_API_BASE_URL}{endpoint}"
    headers: Dict[str, str] = {}

    if V0_MCP_CLI_ADMIN_API_KEY:
        headers["X-Admin-API-Key"] = V0_MCP_CLI_ADMIN_API_KEY
    elif endpoint.startswith("/admin"):
        typer.secho(
            "CLI: Warning - ADMIN_API_KEY not set in .env for CLI. Admin API calls might fail.",
            fg=typer.colors.YELLOW
        )

    typer.echo(f"CLI: {method.upper()} {full_url}")
    if json_payload:
        typer.echo(f"CLI: JSON Payload: {json.dumps(json_payload, indent=2)}")
    if params_payload:
        typer.echo(f"CLI: Query Params: {params_payload}")

    try:
        response = requests.request(
            method,
            full_url,
            json=json_payload,
            params=params_payload,
            headers=headers,
            timeout=30
        )
    except requests.exceptions.ConnectionError as e:
        typer.secho(
            f"CLI: Connection Error - Could not connect to API at {full_url}. Is the server running? Error: {e}",
            fg=typer.colors.RED
        )
        raise typer.Exit(code=1)
    except requests.exceptions.RequestException as e:
        typer.secho(f"CLI: Request Error - {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    typer.echo(f"CLI: Response Status: {response.status_code}")
    expected_statuses = [expected_status] if isinstance(expected_status, int) else expected_status

    if response.status_code not in expected_statuses:
        err_msg = f"CLI: API Error - Expected status {expected_status}, got {response.status_code}."
        try:
            err_data = response.json()
            err_msg += f" Detail: {err_data.get('detail', response.text)}"
        except ValueError:
            err_msg += f" Raw response: {response.text}"
        typer.secho(err_msg, fg=typer.colors.RED)
        raise typer.Exit(code=1)

    if not expect_json_response:
        typer.secho(f"CLI: Success (Status {response.status_code}).", fg=typer.colors.GREEN)
        return response.text

    try:
        data = response.json()
    except ValueError:
        typer.secho(
            f"CLI: Error - Could not decode JSON response. Raw text: {response.text}",
            fg=typer.colors.RED
        )
        raise typer.Exit(code=1)
    typer.echo(typer.style("CLI: Response JSON:", fg=typer.colors.CYAN))
    typer.echo(json.dumps(data, indent=2))
    return data


@app.command("generate-pkce")
def generate_pkce(
    method: Annotated[
        str,
        typer.Option("--method", help=f"Challenge method ({', '.join(SUPPORTED_CHALLENGE_METHODS)}).")
    ] = "S256",
    length: Annotated[
        int,
        typer.Option("--length", help="Verifier length.", min=MIN_VERIFIER_LENGTH, max=MAX_VERIFIER_LENGTH)
    ] = DEFAULT_VERIFIER_LENGTH,
):
    """Print a PKCE verifier/challenge pair for a manual /authorize + /token round trip."""
    if method not in SUPPORTED_CHALLENGE_METHODS:
        typer.secho(f"Error: Unsupported method '{method}'.", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    verifier = generate_pkce_code_verifier(length)
    challenge = generate_pkce_code_challenge(verifier, method)
    typer.echo(json.dumps(
        {"code_verifier": verifier, "code_challenge": challenge, "code_challenge_method": method},
        indent=2
    ))
