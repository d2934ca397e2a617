# v0_mcp/cli/config.py
import os
from dotenv import load_dotenv
from pathlib import Path

# This file is at <project>/v0_mcp/cli/config.py
project_root = Path(__file__).parent.parent.parent.resolve()

# Values in .env override the process environment for CLI runs
load_dotenv(dotenv_path=project_root / '.env', override=True)

# Base URL of the running server
V0_MCP_CLI_API_BASE_URL = os.getenv("V0_MCP_CLI_API_BASE_URL", "http://127.0.0.1:8000")

# Admin API key for authenticated operations
V0_MCP_CLI_ADMIN_API_KEY = os.getenv("ADMIN_API_KEY")
