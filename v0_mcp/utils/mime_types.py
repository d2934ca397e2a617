# v0_mcp/utils/mime_types.py

MIME_TYPES = {
    "javascript": "text/javascript",
    "typescript": "text/typescript",
    "jsx": "text/jsx",
    "tsx": "text/tsx",
    "html": "text/html",
    "css": "text/css",
    "json": "application/json",
    "python": "text/x-python",
    "java": "text/x-java-source",
    "cpp": "text/x-c++src",
    "c": "text/x-csrc",
    "rust": "text/x-rust",
    "go": "text/x-go",
    "php": "text/x-php",
    "ruby": "text/x-ruby",
    "shell": "text/x-shellscript",
    "bash": "text/x-shellscript",
    "sql": "text/x-sql",
    "xml": "text/xml",
    "yaml": "text/yaml",
    "yml": "text/yaml",
    "markdown": "text/markdown",
    "md": "text/markdown",
}


def get_mime_type(language: str) -> str:
    """Map a file language to a MIME type, defaulting to text/plain."""
    return MIME_TYPES.get((language or "").lower(), "text/plain")
