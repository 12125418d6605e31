from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from apidraft.config import DEFAULT_CACHE_DIR, GenerateOptions
from apidraft.errors import DirectoryNotFound, MissingCredentials
from apidraft.extractors.fastify.handlers import LexicalHandlerResolver
from apidraft.orchestrator.pipeline import collect_routes, generate_document, write_document
from apidraft.utils.log import configure_logging

app = typer.Typer(no_args_is_help=True, add_completion=False)

console = Console()
err_console = Console(stderr=True)


@app.command()
def generate(
    routes: str = typer.Option("./routes", "--routes", "-r", help="Routes directory"),
    plugins: str = typer.Option("./plugins", "--plugins", "-p", help="Plugins directory (decorated handlers)"),
    output: str = typer.Option("./swagger/swagger.json", "--output", "-o", help="Output file"),
    use_llm: bool = typer.Option(False, "--use-llm", help="Enhance schemas with an LLM (requires OPENAI_API_KEY)"),
    model: Optional[str] = typer.Option(None, help="Model name (default: APIDRAFT_MODEL or gpt-4)"),
    openai_endpoint: Optional[str] = typer.Option(None, help="OpenAI-compatible API base URL"),
    cache: bool = typer.Option(True, "--cache/--no-cache", help="Reuse cached schemas"),
    cache_dir: Optional[str] = typer.Option(None, help=f"Cache directory (default: {DEFAULT_CACHE_DIR})"),
    max_retries: int = typer.Option(3, help="LLM attempts per route"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    configure_logging(verbose, console=err_console)

    options = GenerateOptions.from_env(
        routes_dir=Path(routes).expanduser(),
        plugins_dir=Path(plugins).expanduser(),
        use_llm=use_llm,
        model=model,
        openai_endpoint=openai_endpoint,
        use_cache=cache,
        cache_dir=Path(cache_dir).expanduser() if cache_dir else None,
        max_retries=max_retries,
    )

    console.print("[bold green]apidraft[/bold green] generate")
    try:
        result = asyncio.run(generate_document(options))
        out_path = write_document(result.document, output)
    except DirectoryNotFound as e:
        err_console.print(f"[bold red]Error:[/bold red] Routes directory not found: {e.path}")
        raise typer.Exit(code=1)
    except MissingCredentials as e:
        err_console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(code=1)
    except OSError as e:
        err_console.print(f"[bold red]Error:[/bold red] Could not write {output}: {e}")
        raise typer.Exit(code=1)
    except Exception as e:
        err_console.print(f"[bold red]Error generating documentation:[/bold red] {e}")
        raise typer.Exit(code=1)

    console.print(f"Files scanned: {result.files_scanned}")
    console.print(f"Cache hits: {result.cache_hits}")
    if use_llm:
        console.print(f"LLM enhanced: {result.llm_enhanced}")
    if result.skipped:
        console.print(f"[yellow]Skipped routes: {len(result.skipped)}[/yellow]")
    console.print("")
    console.print(f"[bold green]Wrote[/bold green] OpenAPI document to: {out_path}")
    console.print(f"Total endpoints: [bold]{result.endpoint_count}[/bold]")


@app.command("routes")
def routes_list(
    routes: str = typer.Argument(..., help="Routes directory"),
    plugins: Optional[str] = typer.Option(None, "--plugins", "-p", help="Plugins directory"),
    format: str = typer.Option("table", help="Output format: table|json"),
) -> None:
    """List the route registrations found, without generating a document."""
    configure_logging(console=err_console)
    routes_dir = Path(routes).expanduser()
    resolver = LexicalHandlerResolver(routes_dir, Path(plugins).expanduser() if plugins else None)
    try:
        found, skipped, files_scanned = collect_routes(routes_dir, resolver)
    except DirectoryNotFound as e:
        err_console.print(f"[bold red]Error:[/bold red] Routes directory not found: {e.path}")
        raise typer.Exit(code=1)

    fmt = format.lower().strip()
    if fmt not in ("table", "json"):
        raise typer.BadParameter("format must be one of: table, json")

    if fmt == "json":
        rows = [
            {
                "method": r.method.upper(),
                "path": r.doc_route,
                "handler": r.handler_name or "<inline>",
                "file": r.file_path,
                "line": r.line,
                "auth": bool(r.requires_auth),
            }
            for r in found
        ]
        console.print(json.dumps(rows, indent=2), soft_wrap=True, markup=False, highlight=False)
        return

    console.print(f"[bold]Files scanned:[/bold] {files_scanned}")
    console.print(f"[bold]Routes:[/bold] {len(found)} (skipped {len(skipped)})")

    table = Table(show_header=True, header_style="bold")
    table.add_column("METHOD", no_wrap=True)
    table.add_column("PATH")
    table.add_column("HANDLER")
    table.add_column("AUTH", no_wrap=True)
    table.add_column("FILE:LINE", no_wrap=True)

    for r in found:
        table.add_row(
            r.method.upper(),
            r.doc_route,
            r.handler_name or "<inline>",
            "yes" if r.requires_auth else "",
            f"{Path(r.file_path).name}:{r.line}",
        )
    for s in skipped:
        table.add_row(s.method.upper(), s.route, f"[red]{s.reason}[/red]", "", Path(s.file_path).name)

    console.print(table)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
