"""
CLI entry point for ActionPacks.

This module provides the Typer-based command-line interface (``ap``).

Commands:
    call            Evaluate one tool call against a bundle (exit code = verdict)
    export          Export packs and their rules into a bundle
    pack validate   Check a pack's manifest and schemas
    pack tools      List the tools a pack declares
    policy suggest  Suggest rules for every tool in a pack and save them
    policy show     Show the rule that governs one tool
    policy list     List every rule in a policy file

Exit codes for `ap call`:
    0  ok                   call accepted (mock execution)
    1  blocked              schema or allowlist issues; also load errors
    2  needs-confirmation   pass --assume-yes to grant it
    3  rate-limited         window quota exhausted
    4  schema error         the tool's schema itself is malformed

Architecture Note:
    The CLI only parses arguments, loads files and renders output. Decisions
    are made by actionpacks.policy; hosts can embed that directly.
"""

import json
import traceback
from pathlib import Path
from typing import Annotated, Optional

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from actionpacks import __version__
from actionpacks.config import load_settings
from actionpacks.errors import ActionPacksError, SchemaCompileError
from actionpacks.host import Host, load_payload
from actionpacks.logs import configure_logging
from actionpacks.pack import Bundle, PackLoader, export_bundle, parse_tool_selector
from actionpacks.policy import PolicyStore, RuleSuggester
from actionpacks.report import (
    build_result_dict,
    build_rule_dict,
    render_result,
    render_rule,
)
from actionpacks.schema import EXIT_SCHEMA_ERROR, RateLimit

# Initialize Typer app with metadata
app = typer.Typer(
    name="ap",
    help="Govern tool calls with schema, allowlist, confirmation and rate-limit rules.",
    add_completion=False,
    no_args_is_help=True,
)

# Rich console for formatted output
console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]ap[/bold] (actionpacks) version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-V",
            help="Enable debug logging on stderr.",
        ),
    ] = False,
) -> None:
    """
    ActionPacks - governance for tool calls.

    Suggest policy rules for pack tools, export bundles, and evaluate calls
    to get one verdict per call.
    """
    configure_logging(verbose)


def _output_json_error(error_type: str, message: str, include_traceback: bool = False) -> None:
    """Output an error in JSON format."""
    output = {
        "error": True,
        "error_type": error_type,
        "message": message,
    }
    if include_traceback:
        output["traceback"] = traceback.format_exc()
    print(json.dumps(output, indent=2))


def _fail(error: Exception, json_output: bool, error_type: str, code: int = 1, debug: bool = False) -> None:
    """Report an error in the requested format and exit."""
    if json_output:
        if isinstance(error, ActionPacksError):
            output = {"error": True, **error.to_dict()}
            output["error_type"] = error_type
            print(json.dumps(output, indent=2, default=str))
        else:
            _output_json_error(error_type, str(error), debug)
    else:
        console.print(f"[red]Error: {escape(str(error))}[/red]", highlight=False)
        if debug:
            console.print(f"[dim]{escape(traceback.format_exc())}[/dim]")
    raise typer.Exit(code=code)


# =============================================================================
# call
# =============================================================================


@app.command()
def call(
    bundle_path: Annotated[
        Path,
        typer.Option(
            "--bundle",
            "-b",
            help="Path to an exported bundle directory.",
            exists=True,
            file_okay=False,
            dir_okay=True,
            resolve_path=True,
        ),
    ],
    tool: Annotated[
        str,
        typer.Option(
            "--tool",
            "-t",
            help="Tool selector: <packId>:<toolName>.",
        ),
    ],
    payload_file: Annotated[
        Path,
        typer.Option(
            "--file",
            "-f",
            help="Path to the JSON payload file.",
            exists=True,
            dir_okay=False,
            readable=True,
            resolve_path=True,
        ),
    ],
    assume_yes: Annotated[
        bool,
        typer.Option(
            "--assume-yes",
            "-y",
            help="Grant confirmation for tools that require it.",
        ),
    ] = False,
    calls_made: Annotated[
        Optional[int],
        typer.Option(
            "--calls-made",
            help="Calls already made in the current rate-limit window.",
            min=0,
        ),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output results in JSON format."),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Include tracebacks in error output."),
    ] = False,
) -> None:
    """
    Evaluate one tool call from a bundle.

    Validates the payload against the tool schema and allowlist, then checks
    confirmation and the rate limit. Accepted calls are mock-executed.

    Example:
        $ ap call --bundle dist/it-ops --tool issues-basic@1.0.0:create_issue --file ok.json -y
    """
    try:
        bundle = Bundle(bundle_path)
        payload = load_payload(payload_file)
        result = Host(bundle).invoke(
            tool,
            payload,
            assume_yes=assume_yes,
            calls_made=calls_made,
        )
    except SchemaCompileError as e:
        _fail(e, json_output, "schema_compile_error", EXIT_SCHEMA_ERROR, debug)
    except ActionPacksError as e:
        _fail(e, json_output, "call_error", 1, debug)

    if json_output:
        print(json.dumps(build_result_dict(result), indent=2, default=str))
    else:
        render_result(result, console)

    raise typer.Exit(code=result.exit_code)


# =============================================================================
# export
# =============================================================================


@app.command()
def export(
    pack_paths: Annotated[
        list[Path],
        typer.Argument(
            help="Pack directories to export.",
            exists=True,
            file_okay=False,
            dir_okay=True,
            resolve_path=True,
        ),
    ],
    policy_path: Annotated[
        Path,
        typer.Option(
            "--policy",
            "-p",
            help="Policy file with the rules to embed.",
            exists=True,
            dir_okay=False,
            readable=True,
            resolve_path=True,
        ),
    ],
    out_dir: Annotated[
        Path,
        typer.Option(
            "--out",
            "-o",
            help="Bundle output directory.",
            resolve_path=True,
        ),
    ],
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output in JSON format."),
    ] = False,
) -> None:
    """
    Export packs and their rules into a self-contained bundle.

    Example:
        $ ap export packs/issues-basic --policy policies.yaml --out dist/it-ops
    """
    try:
        loaders = [PackLoader(path) for path in pack_paths]
        store = PolicyStore.load(policy_path)
        manifest_path = export_bundle(loaders, store, out_dir)
    except ActionPacksError as e:
        _fail(e, json_output, "export_error")

    if json_output:
        output = {
            "bundle": str(out_dir),
            "manifest": str(manifest_path),
            "packs": [loader.manifest.id for loader in loaders],
        }
        print(json.dumps(output, indent=2))
    else:
        console.print(f"[green]✓[/green] Exported {len(loaders)} pack(s) to [cyan]{out_dir}[/cyan]")
        for loader in loaders:
            console.print(f"  [dim]•[/dim] {loader.manifest.id} ({len(loader.manifest.tools)} tools)")


# =============================================================================
# pack
# =============================================================================


pack_app = typer.Typer(
    name="pack",
    help="Inspect and validate packs.",
    no_args_is_help=True,
)
app.add_typer(pack_app, name="pack")


@pack_app.command("validate")
def pack_validate(
    pack_path: Annotated[
        Path,
        typer.Argument(
            help="Path to pack directory.",
            exists=True,
            file_okay=False,
            dir_okay=True,
            resolve_path=True,
        ),
    ],
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output in JSON format."),
    ] = False,
) -> None:
    """Validate a pack's manifest and tool schemas."""
    try:
        loader = PackLoader(pack_path)
        errors = loader.validate_structure()
    except ActionPacksError as e:
        _fail(e, json_output, "pack_validate_error")

    if json_output:
        output = {
            "valid": len(errors) == 0,
            "errors": errors,
            "pack_path": str(pack_path),
        }
        if len(errors) == 0:
            output["manifest"] = {
                "name": loader.manifest.name,
                "version": loader.manifest.version,
                "id": loader.manifest.id,
            }
        print(json.dumps(output, indent=2))
    else:
        if errors:
            console.print(f"[red]Pack validation failed: {len(errors)} error(s)[/red]")
            console.print()
            for error in errors:
                console.print(f"  [red]•[/red] {escape(error)}", highlight=False)
        else:
            manifest = loader.manifest
            console.print(f"[green]✓[/green] Pack [cyan]{manifest.name}[/cyan] v{manifest.version} is valid")

    raise typer.Exit(code=0 if len(errors) == 0 else 1)


@pack_app.command("tools")
def pack_tools(
    pack_path: Annotated[
        Path,
        typer.Argument(
            help="Path to pack directory.",
            exists=True,
            file_okay=False,
            dir_okay=True,
            resolve_path=True,
        ),
    ],
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output in JSON format."),
    ] = False,
) -> None:
    """List the tools a pack declares."""
    try:
        loader = PackLoader(pack_path)
        manifest = loader.manifest
    except ActionPacksError as e:
        _fail(e, json_output, "pack_tools_error")

    if json_output:
        output = {
            "pack": manifest.id,
            "tools": [
                {
                    "name": spec.name,
                    "selector": f"{manifest.id}:{spec.name}",
                    "side_effects": spec.side_effects,
                    "allowlist": spec.allowlist,
                    "description": spec.description,
                }
                for spec in manifest.tools
            ],
        }
        print(json.dumps(output, indent=2))
        return

    table = Table(title=f"Tools in {manifest.id}", show_header=True, header_style="bold")
    table.add_column("Tool", style="cyan")
    table.add_column("Side effects")
    table.add_column("Allowlist")
    table.add_column("Description")
    for spec in manifest.tools:
        table.add_row(
            spec.name,
            ", ".join(spec.side_effects) or "[dim]-[/dim]",
            ", ".join(spec.allowlist) if spec.allowlist else "[dim]inferred[/dim]",
            escape(spec.description),
        )
    console.print(table)


# =============================================================================
# policy
# =============================================================================


policy_app = typer.Typer(
    name="policy",
    help="Suggest and inspect policy rules.",
    no_args_is_help=True,
)
app.add_typer(policy_app, name="policy")


@policy_app.command("suggest")
def policy_suggest(
    pack_path: Annotated[
        Path,
        typer.Argument(
            help="Path to pack directory.",
            exists=True,
            file_okay=False,
            dir_okay=True,
            resolve_path=True,
        ),
    ],
    policy_path: Annotated[
        Path,
        typer.Option(
            "--policy",
            "-p",
            help="Policy file to update (created if missing).",
            dir_okay=False,
            resolve_path=True,
        ),
    ],
    max_calls: Annotated[
        Optional[int],
        typer.Option("--max-calls", help="Rate limit: calls per window.", min=1),
    ] = None,
    window_sec: Annotated[
        Optional[int],
        typer.Option("--window-sec", help="Rate limit: window length in seconds.", min=1),
    ] = None,
    config_path: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Governance settings YAML (keyword lists, default limits).",
            exists=True,
            dir_okay=False,
            readable=True,
            resolve_path=True,
        ),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output in JSON format."),
    ] = False,
) -> None:
    """
    Suggest a rule for every tool in a pack and save it to the policy file.

    Existing rules for the same pack and tool are overwritten; other rules
    are kept.

    Example:
        $ ap policy suggest packs/issues-basic --policy policies.yaml --max-calls 10
    """
    try:
        settings = load_settings(config_path)
        loader = PackLoader(pack_path)
        tools = loader.tool_descriptors()
        store = PolicyStore.load(policy_path, missing_ok=True)
        defaults = RateLimit(
            max_calls=max_calls if max_calls is not None else settings.default_max_calls,
            window_sec=window_sec if window_sec is not None else settings.default_window_sec,
        )
        rules = RuleSuggester(settings).suggest_into(store, tools, defaults)
        store.save(policy_path)
    except ActionPacksError as e:
        _fail(e, json_output, "policy_suggest_error")
    except (ValidationError, yaml.YAMLError, UnicodeDecodeError, OSError) as e:
        _fail(e, json_output, "config_error")

    if json_output:
        output = {
            "policy": str(policy_path),
            "pack": loader.manifest.id,
            "rules": [rule.to_record() for rule in rules],
        }
        print(json.dumps(output, indent=2))
        return

    console.print(
        f"[green]✓[/green] Wrote {len(rules)} rule(s) for [cyan]{loader.manifest.id}[/cyan] "
        f"to {policy_path}"
    )
    table = Table(show_header=True, header_style="bold")
    table.add_column("Tool", style="cyan")
    table.add_column("Confirm", width=8)
    table.add_column("Allowlist")
    table.add_column("Rate limit")
    for rule in rules:
        table.add_row(
            rule.tool,
            "[yellow]yes[/yellow]" if rule.confirm_required else "no",
            ", ".join(rule.allowlist) or "[dim](unrestricted)[/dim]",
            f"{rule.rate_limit.max_calls}/{rule.rate_limit.window_sec}s",
        )
    console.print(table)


@policy_app.command("show")
def policy_show(
    policy_path: Annotated[
        Path,
        typer.Option(
            "--policy",
            "-p",
            help="Policy file.",
            exists=True,
            dir_okay=False,
            readable=True,
            resolve_path=True,
        ),
    ],
    tool: Annotated[
        str,
        typer.Option("--tool", "-t", help="Tool selector: <packId>:<toolName>."),
    ],
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output in JSON format."),
    ] = False,
) -> None:
    """Show the rule that governs one tool, and how it was matched."""
    try:
        pack_id, tool_name = parse_tool_selector(tool)
        store = PolicyStore.load(policy_path)
    except ActionPacksError as e:
        _fail(e, json_output, "policy_show_error")

    match = store.resolve(pack_id, tool_name)
    if json_output:
        print(json.dumps(build_rule_dict(match, pack_id, tool_name), indent=2))
    else:
        render_rule(match, pack_id, tool_name, console)


@policy_app.command("list")
def policy_list(
    policy_path: Annotated[
        Path,
        typer.Option(
            "--policy",
            "-p",
            help="Policy file.",
            exists=True,
            dir_okay=False,
            readable=True,
            resolve_path=True,
        ),
    ],
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output in JSON format."),
    ] = False,
) -> None:
    """List every rule in a policy file."""
    try:
        store = PolicyStore.load(policy_path)
    except ActionPacksError as e:
        _fail(e, json_output, "policy_list_error")

    if json_output:
        print(json.dumps({"rules": store.to_records(), "count": len(store)}, indent=2))
        return

    if len(store) == 0:
        console.print("[dim]No rules.[/dim]")
        return

    table = Table(title="Policy Rules", show_header=True, header_style="bold")
    table.add_column("Pack", style="dim")
    table.add_column("Tool", style="cyan")
    table.add_column("Confirm", width=8)
    table.add_column("Allowlist")
    table.add_column("Rate limit")
    for rule in store:
        table.add_row(
            rule.pack,
            rule.tool,
            "[yellow]yes[/yellow]" if rule.confirm_required else "no",
            ", ".join(rule.allowlist) or "[dim](unrestricted)[/dim]",
            f"{rule.rate_limit.max_calls}/{rule.rate_limit.window_sec}s",
        )
    console.print(table)


if __name__ == "__main__":
    app()
