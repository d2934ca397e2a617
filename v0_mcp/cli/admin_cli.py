# v0_mcp/cli/admin_cli.py
from typing import List, Optional

import typer
from typing_extensions import Annotated

from .utils_cli import make_api_request

app = typer.Typer(
    name="admin",
    help="v0 MCP administrative commands (requires ADMIN_API_KEY).",
    no_args_is_help=True
)


@app.command("stats")
def stats():
    """Show active sessions and live SSE channels."""
    make_api_request("GET", "/admin/stats")


@app.command("session")
def session_logging(
    session_id: Annotated[str, typer.Argument(help="The MCP session id to inspect.")]
):
    """Show logging configuration, rate-limit status and file stats for one session."""
    make_api_request("GET", f"/admin/sessions/{session_id}/logging")


@app.command("rate-limits")
def rate_limits(
    session_ids: Annotated[List[str], typer.Argument(help="One or more MCP session ids.")]
):
    """Show logging rate-limit status for the given sessions."""
    make_api_request("GET", "/admin/rate-limits", params_payload={"session_id": session_ids})


@app.command("reset-rate-limit")
def reset_rate_limit(
    session_id: Annotated[str, typer.Argument(help="The MCP session whose rate limit to reset.")]
):
    """Clear the logging rate-limit window for a session."""
    make_api_request("POST", f"/admin/sessions/{session_id}/rate-limit/reset")


@app.command("cleanup")
def cleanup(
    older_than_ms: Annotated[
        int,
        typer.Option("--older-than-ms", help="Age cutoff for logging configs and rate-limit entries.", min=0)
    ] = 24 * 60 * 60 * 1000,
    sse_max_age_seconds: Annotated[
        Optional[int],
        typer.Option("--sse-max-age-seconds", help="Age cutoff for SSE channels.", min=0)
    ] = None,
):
    """Run maintenance cleanup on the server."""
    payload = {"older_than_ms": older_than_ms}
    if sse_max_age_seconds is not None:
        payload["sse_max_age_seconds"] = sse_max_age_seconds
    make_api_request("POST", "/admin/cleanup", json_payload=payload)


@app.command("analytics")
def analytics_counters():
    """Show usage counters."""
    make_api_request("GET", "/admin/analytics")
