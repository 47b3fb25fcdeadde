"""
Console output for ActionPacks results.

Renders verdicts and rules with Rich: a status line with an icon, a details
table, then whatever the verdict needs the user to act on (issues, the
confirmation prompt, or rate-limit numbers).
"""

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from actionpacks.host import HostResult
from actionpacks.policy.store import MatchKind, RuleMatch
from actionpacks.schema import PolicyRule, VerdictStatus


# Status icons
ICON_OK = "[green]✓[/green]"
ICON_BLOCKED = "[red]✗[/red]"
ICON_CONFIRM = "[yellow]?[/yellow]"
ICON_LIMITED = "[yellow]⊘[/yellow]"

STATUS_STYLES = {
    VerdictStatus.OK: ("green", ICON_OK),
    VerdictStatus.BLOCKED: ("red", ICON_BLOCKED),
    VerdictStatus.NEEDS_CONFIRMATION: ("yellow", ICON_CONFIRM),
    VerdictStatus.RATE_LIMITED: ("yellow", ICON_LIMITED),
}


def render_result(result: HostResult, console: Console | None = None) -> None:
    """
    Print a host result.

    Args:
        result: The host's result
        console: Rich Console instance (creates one if not provided)
    """
    if console is None:
        console = Console()

    verdict = result.verdict
    style, icon = STATUS_STYLES[verdict.status]
    console.print(
        f"{icon} [cyan]{escape(result.tool.selector)}[/cyan]: "
        f"[{style}]{verdict.status.value}[/{style}]"
    )
    console.print()

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Field", style="dim")
    table.add_column("Value")
    table.add_row("Schema", escape(result.schema_path or "(none)"))
    table.add_row("Side effects", escape(", ".join(sorted(result.tool.side_effects)) or "(none)"))
    table.add_row("Rule", _describe_match(result.match, result.rule))
    if result.rule is not None:
        table.add_row("Allowlist", escape(", ".join(result.rule.allowlist) or "(unrestricted)"))
        table.add_row(
            "Rate limit",
            f"{result.rule.rate_limit.max_calls} calls / {result.rule.rate_limit.window_sec}s",
        )
    console.print(table)
    console.print()

    if verdict.status == VerdictStatus.BLOCKED:
        console.print("[red]Issues:[/red]")
        for issue in verdict.issues:
            console.print(f"  [red]•[/red] {escape(str(issue))}")
    elif verdict.status == VerdictStatus.NEEDS_CONFIRMATION:
        console.print(
            f'[yellow]Confirmation required: "{escape(verdict.message or "")}" '
            "(pass --assume-yes)[/yellow]"
        )
    elif verdict.status == VerdictStatus.RATE_LIMITED:
        console.print(
            f"[yellow]Rate limit exceeded: call {verdict.attempted} of max "
            f"{verdict.max_calls} per {verdict.window_sec}s[/yellow]"
        )
    else:
        console.print("[green]Host accepted the call (mock execution).[/green]")


def render_rule(match: RuleMatch, pack_id: str, tool_name: str, console: Console | None = None) -> None:
    """Print the rule resolved for a tool."""
    if console is None:
        console = Console()

    target = escape(f"{pack_id}:{tool_name}")
    if match.rule is None:
        console.print(
            f"[yellow]No rule for {target}[/yellow] "
            "[dim](no allowlist, no confirmation, no rate limit)[/dim]"
        )
        return

    rule = match.rule
    console.print(f"[bold]{target}[/bold] {_describe_match(match.kind, rule)}")
    if rule.description:
        console.print(f"[dim]{escape(rule.description)}[/dim]")
    console.print()
    console.print(rule_table(rule))


def rule_table(rule: PolicyRule) -> Table:
    """Details table for one rule."""
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Field", style="dim")
    table.add_column("Value")
    confirm = "[yellow]required[/yellow]" if rule.confirm_required else "not required"
    table.add_row("Confirm", confirm)
    if rule.confirm_required:
        table.add_row("Message", escape(rule.confirm_message))
    table.add_row("Allowlist", escape(", ".join(rule.allowlist) or "(unrestricted)"))
    table.add_row("Rate limit", f"{rule.rate_limit.max_calls} calls / {rule.rate_limit.window_sec}s")
    return table


def _describe_match(kind: MatchKind, rule: PolicyRule | None) -> str:
    if rule is None:
        return "[dim]none (permissive defaults)[/dim]"
    if kind == MatchKind.PACK_NAME:
        return f"[yellow]matched by pack name via {escape(rule.pack)}[/yellow]"
    return "[green]exact match[/green]"
