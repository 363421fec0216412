"""holorag rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from holorag.cli.errors import err_backend_unavailable
    console.print(err_backend_unavailable("ollama/nomic-embed-text", "http://localhost:11434"))
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_config(message: str) -> str:
    """holorag.yaml or the global config is invalid."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {message}\n"
        "  Fix the value in holorag.yaml (or ~/.holorag/config.yaml) and run the command again."
    )


def err_no_api_key(provider: str) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'groq'. Set:  export GROQ_API_KEY=...
    """
    env_map = {
        "openai": "OPENAI_API_KEY",
        "anthropic": "ANTHROPIC_API_KEY",
        "cohere": "COHERE_API_KEY",
        "gemini": "GEMINI_API_KEY",
        "mistral": "MISTRAL_API_KEY",
        "azure": "AZURE_API_KEY",
        "groq": "GROQ_API_KEY",
        "together_ai": "TOGETHERAI_API_KEY",
    }
    env_var = env_map.get(provider.lower(), f"{provider.upper()}_API_KEY")
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=..."
    )


def err_backend_unavailable(model: str, api_base: str | None) -> str:
    """Embedding backend unreachable or model not installed."""
    name = model.split("/", 1)[1] if "/" in model else model
    if model.startswith("ollama"):
        return (
            f"[red]Error:[/] Embedding backend not available at {api_base} (model '{name}').\n"
            "  Run:  ollama serve\n"
            f"  Run:  ollama pull {name}"
        )
    provider = model.split("/", 1)[0] if "/" in model else "openai"
    return (
        f"[red]Error:[/] Embedding backend '{model}' is not available.\n"
        f"  Set the API key for '{provider}' or change embedding.model in holorag.yaml."
    )


def err_file_not_found(path: str) -> str:
    return (
        f"[red]Error:[/] File not found: '{path}'\n"
        "  Check the path and run the command again."
    )


def err_connection_not_found(connection_id: str, available: list[str]) -> str:
    """Unknown SQL connection id."""
    listed = ", ".join(available) if available else "(none)"
    return (
        f"[red]Error:[/] SQL connection '{connection_id}' not found.\n"
        f"  Saved connections: {listed}\n"
        "  Run:  holorag sql add --name <name> --database <db>"
    )


def err_no_active_connection() -> str:
    return (
        "[red]Error:[/] No active SQL connection.\n"
        "  Run:  holorag sql add --name <name> --database <db>\n"
        "  or:   holorag sql use <connection-id>"
    )


def err_execute_mode_disabled() -> str:
    """execute_query() called while in query-only mode."""
    return (
        "[red]Error:[/] Query execution is disabled (mode: query-only).\n"
        "  Run:  holorag sql mode execute"
    )


def warn_no_context(query: str) -> str:
    return (
        f"[yellow]No context found[/] for '{query}'.\n"
        "  Run:  holorag status  to check which engines are available."
    )
