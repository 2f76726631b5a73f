"""drivemap CLI — compile DriveMaps workbooks and publish them to a policy."""

from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from drivemap import __version__
from drivemap.errors import DriveMapError

console = Console()


@click.group()
@click.version_option(version=__version__)
def main():
    """drivemap — network drive mappings as Group Policy Preferences.

    Reads the DriveMaps sheet of a workbook, compiles it into Drives.xml,
    and publishes it to a policy object with a bumped version so clients
    reapply it.
    """


def _print_row(report) -> None:
    from drivemap.models.drive_map import RowStatus

    row = report.row
    if report.status == RowStatus.SKIPPED:
        console.print(f"  [yellow]-[/] row {row.row_number} skipped: {report.reason}")
        return

    console.print(
        f"  [green]v[/] row {row.row_number} {escape(row.letter.upper())}: "
        f"-> {escape(row.path.lower())}"
    )
    for outcome in report.unresolved:
        console.print(
            f"      [yellow]![/] filter not resolved: {escape(outcome.token.display_name)}"
            f" ({outcome.detail})"
        )


# ── Publish ──────────────────────────────────────────────────────────


@main.command()
@click.argument("policy_name")
@click.option("--domain", "-d", default=None, help="Target domain (default: current domain)")
@click.option("--replace/--update", "replace_mode", default=False, help="Replace or Update drive action")
@click.option("--workbook", "-w", default=None, help="Workbook with a DriveMaps sheet")
@click.option("--config", "-c", "config_path", default=None, help="Path to drivemap.yaml")
@click.option("--create/--no-create", default=True, help="Create the policy if it does not exist")
@click.option("--cas", is_flag=True, help="Fail if the directory version changed during the run")
def publish(
    policy_name: str,
    domain: str | None,
    replace_mode: bool,
    workbook: str | None,
    config_path: str | None,
    create: bool,
    cas: bool,
):
    """Compile the workbook and publish it to POLICY_NAME."""
    from drivemap.audit.run_log import RunLog
    from drivemap.compiler.drives_xml import DriveMapCompiler, render_drives_xml
    from drivemap.config import current_domain, load_config
    from drivemap.directory.client import DirectoryClient
    from drivemap.errors import PolicyNotFoundError
    from drivemap.filters.resolver import FilterResolver
    from drivemap.publish.publisher import PolicyPublisher, backup_policy
    from drivemap.publish.registry_pol import ensure_linked_connections
    from drivemap.sources.workbook import read_rows

    config = load_config(config_path)
    domain = domain or current_domain()
    workbook_path = Path(workbook or config.workbook)
    run_log = RunLog(Path(config.audit_dir) if config.audit_dir else None)

    console.print(f"\n[bold blue]drivemap[/] — Publishing '{escape(policy_name)}' to {escape(domain)}\n")

    policy = None
    try:
        rows = read_rows(workbook_path, sheet=config.sheet)
        console.print(f"  [green]v[/] Workbook found: {escape(str(workbook_path))} ({len(rows)} rows)")

        directory = DirectoryClient.connect(config.ldap, domain)
        try:
            policy = directory.find_policy(policy_name)
            if policy is not None:
                console.print(f"  [green]v[/] Policy found: {policy.guid}")
            elif create:
                policy = directory.create_policy(policy_name, config.sysvol_root_for(domain))
                console.print(f"  [green]+[/] Policy created: {policy.guid}")
            else:
                raise PolicyNotFoundError(f"No policy named '{policy_name}'")

            policy_dir = Path(config.sysvol_root_for(domain)) / policy.guid
            backup = backup_policy(policy_dir, config.backup_dir_path(), policy.guid)
            if backup:
                console.print(f"  [green]v[/] Backed up to {escape(str(backup))}")
            else:
                console.print("  [dim]-[/] Nothing to back up")

            publisher = PolicyPublisher(directory, policy_dir, compare_and_swap=cas)
            state = publisher.read_version_state()

            registry_pol = ensure_linked_connections(policy_dir)
            if registry_pol is not None:
                console.print("  [green]+[/] EnableLinkedConnections added to machine settings")
            else:
                console.print("  [green]v[/] EnableLinkedConnections already set")

            console.print("\n[bold]Compiling drive maps:[/]")
            compiler = DriveMapCompiler(FilterResolver(directory))
            result = compiler.compile(rows, replace_mode, on_row=_print_row)

            new_version = state.advance()

            outcome = publisher.publish(
                policy,
                new_version,
                policy_name,
                render_drives_xml(result.document),
                registry_pol=registry_pol,
            )
        finally:
            directory.close()
    except DriveMapError as e:
        console.print(f"\n[red]Failed:[/] {escape(str(e))}")
        run_log.record(
            "publish",
            policy.guid if policy else "",
            policy_name,
            details={"error": str(e)},
            success=False,
        )
        raise SystemExit(1)

    run_log.record(
        "publish",
        policy.guid,
        policy_name,
        version=outcome.version,
        details={
            "entries": len(result.document.entries),
            "skipped": len(result.skipped),
            "mode": "replace" if replace_mode else "update",
        },
    )
    console.print(
        Panel(
            f"{len(result.document.entries)} drive maps, {len(result.skipped)} rows skipped\n"
            f"Version {outcome.version}",
            title="Published",
        )
    )


# ── Compile ──────────────────────────────────────────────────────────


@main.command(name="compile")
@click.argument("workbook")
@click.option("--output", "-o", default="Drives.xml", help="Where to write Drives.xml")
@click.option("--replace/--update", "replace_mode", default=False, help="Replace or Update drive action")
@click.option("--sheet", default="DriveMaps", help="Worksheet name")
def compile_workbook(workbook: str, output: str, replace_mode: bool, sheet: str):
    """Compile WORKBOOK to a local Drives.xml without contacting the directory.

    Filters cannot be resolved offline, so every filter token is reported
    as unresolved and left out of the output.
    """
    from drivemap.compiler.drives_xml import DriveMapCompiler, render_drives_xml
    from drivemap.filters.resolver import FilterResolver, OfflineDirectory
    from drivemap.sources.workbook import read_rows

    console.print(f"\n[bold blue]drivemap[/] — Compiling: {escape(workbook)}\n")

    try:
        rows = read_rows(workbook, sheet=sheet)
    except DriveMapError as e:
        console.print(f"[red]Failed:[/] {escape(str(e))}")
        raise SystemExit(1)

    compiler = DriveMapCompiler(FilterResolver(OfflineDirectory()))
    result = compiler.compile(rows, replace_mode, on_row=_print_row)

    Path(output).write_bytes(render_drives_xml(result.document))
    console.print(f"\n[green]Drives.xml written to:[/] {escape(output)}")


# ── Version ──────────────────────────────────────────────────────────


@main.command(name="next-version")
@click.argument("gpt_ini", required=False)
def next_version_cmd(gpt_ini: str | None):
    """Show the version the next publish would write, given GPT_INI."""
    from drivemap.versioning.counter import VersionState

    text = None
    if gpt_ini and Path(gpt_ini).is_file():
        text = Path(gpt_ini).read_text(encoding="utf-8-sig")

    state = VersionState.from_metadata(text)
    current = f"{state.current} ({state.hex_digits})" if state.found else "none"
    value = state.advance()

    table = Table(title="Policy version")
    table.add_column("Current")
    table.add_column("Next", style="green")
    table.add_column("Machine", justify="right")
    table.add_column("User", justify="right")
    table.add_row(current, str(value), state.machine_part, state.user_part)
    console.print(table)


# ── History ──────────────────────────────────────────────────────────


@main.command()
@click.option("--policy", "-p", default=None, help="Only runs for this policy GUID")
@click.option("--limit", "-n", default=20, help="Number of runs to show")
@click.option("--config", "-c", "config_path", default=None, help="Path to drivemap.yaml")
def history(policy: str | None, limit: int, config_path: str | None):
    """List recent publish runs."""
    from drivemap.audit.run_log import RunLog
    from drivemap.config import load_config

    config = load_config(config_path)
    runs = RunLog(Path(config.audit_dir) if config.audit_dir else None).get_runs(policy, limit)

    if not runs:
        console.print("[yellow]No runs recorded.[/]")
        return

    table = Table(title=f"Publish runs ({len(runs)})")
    table.add_column("When", style="dim")
    table.add_column("Policy", style="cyan")
    table.add_column("Version", justify="right")
    table.add_column("By")
    table.add_column("OK", justify="center")

    for run in runs:
        ok = "[green]Y[/]" if run.success else "[red]N[/]"
        table.add_row(run.timestamp[:19], run.policy_name, str(run.version), run.actor, ok)

    console.print(table)


if __name__ == "__main__":
    main()
