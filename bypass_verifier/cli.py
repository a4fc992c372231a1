"""
Command line for bypass-verifier.

    bypass-verifier test standard --domain example.com
    bypass-verifier test dpi --profile "General" --profile "General (ALT)"
    bypass-verifier profiles
    bypass-verifier targets
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from rich.console import Console
from rich.progress import BarColumn, Progress, TextColumn
from rich.table import Table

from . import __version__
from .catalog import ProfileCatalog
from .config import CONFIG_FILE_NAME, VerifierConfig, load_config, save_config
from .domain_lists import DomainListManager
from .engine.supervisor import ProcessSupervisor
from .errors import NoProfilesError, TestRunCancelled, VerifierError
from .logging_setup import setup_logging
from .models import Profile, ProbeResult, TestSuite
from .orchestrator import TestOrchestrator
from .probes.targets import DPI_TARGETS
from .reporting.console_report import render_best, render_probe, render_summary
from .reporting.text_report import export_report
from .status import StatusCollector

LOG = logging.getLogger("bypass_verifier.cli")


def _create_console() -> Console:
    """Create console with platform-specific settings."""
    if sys.platform == "win32":
        return Console(
            highlight=False,
            legacy_windows=False,
            force_terminal=True,
            emoji=False,
            markup=True,
        )
    return Console(highlight=False)


console = _create_console()


def _on_off(value: Optional[str]) -> Optional[bool]:
    if value is None:
        return None
    return value == "on"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bypass-verifier",
        description="Find which engine profiles restore connectivity to blocked targets.",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        default=CONFIG_FILE_NAME,
        help=f"Path to the JSON config file (default: {CONFIG_FILE_NAME})",
    )
    parser.add_argument("--app-path", help="Installation directory holding bin/, lists/ and profiles/")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--log-file",
        action="store_true",
        help="Also write a log file into the logs directory of the installation",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    test = subparsers.add_parser("test", help="Run a test suite against profiles")
    test.add_argument("suite", choices=["standard", "dpi"], help="Probe suite to run")
    test.add_argument("--domain", help="Domain for the standard suite (e.g. discord.com)")
    test.add_argument(
        "--profile",
        action="append",
        dest="profiles",
        metavar="NAME",
        help="Test only this profile (repeatable). Default: all profiles",
    )
    test.add_argument("--custom-url", help="DPI suite: probe this URL instead of the built-in targets")
    test.add_argument(
        "--check-blocked",
        action="store_true",
        help="Standard suite: check the domain without bypass first",
    )
    test.add_argument(
        "--add-to-list",
        action="store_true",
        help="Standard suite: append the domain to the general host list",
    )
    test.add_argument(
        "--game-filter",
        choices=["on", "off"],
        help="Set the game port filter and save it to the config file",
    )
    test.add_argument(
        "--filter-all-ip",
        choices=["on", "off"],
        help="Set the ipset-all restriction and save it to the config file",
    )
    test.add_argument("--save-report", action="store_true", help="Write a text report when done")
    test.add_argument("--report-dir", help="Directory for the text report (default: Desktop or ./reports)")
    test.add_argument("-v", "--verbose", action="store_true", help="Show every probe result in the summary")

    subparsers.add_parser("profiles", help="List available profiles")
    subparsers.add_parser("targets", help="List built-in DPI targets")
    return parser


def _load(args: argparse.Namespace) -> VerifierConfig:
    overrides = {"app_path": args.app_path}
    if args.command == "test":
        overrides.update(
            report_dir=args.report_dir,
            game_filter_enabled=_on_off(args.game_filter),
            filter_all_ip=_on_off(args.filter_all_ip),
        )
    config = load_config(args.config, **overrides)
    if args.command == "test" and (args.game_filter or args.filter_all_ip):
        save_config(config, args.config)
    return config


def cmd_profiles(config: VerifierConfig) -> int:
    profiles = ProfileCatalog(config.profiles_dir).list_available_profiles()
    if not profiles:
        console.print(f"[yellow]No profiles found in {config.profiles_dir}[/yellow]")
        return 1

    table = Table(title="Available Profiles")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Description")
    table.add_column("Args", justify="right", style="magenta")
    for index, profile in enumerate(profiles, 1):
        table.add_row(str(index), profile.name, profile.description, str(len(profile.arguments)))
    console.print(table)
    return 0


def cmd_targets() -> int:
    table = Table(title="DPI Targets")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Provider", style="green")
    table.add_column("Times", justify="right")
    table.add_column("URL", overflow="fold")
    for target in DPI_TARGETS:
        table.add_row(target.id, target.provider, str(target.times), target.url)
    console.print(table)
    return 0


def _install_cancel_handler(cancel_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    except (NotImplementedError, RuntimeError):
        # Windows event loops: Ctrl+C cancels the main task instead
        pass


async def cmd_test(args: argparse.Namespace, config: VerifierConfig) -> int:
    suite = TestSuite.STANDARD if args.suite == "standard" else TestSuite.DPI
    if suite is TestSuite.STANDARD and not (args.domain and args.domain.strip()):
        console.print("[bold red]Error: --domain is required for the standard suite[/bold red]")
        return 2

    status = StatusCollector()
    supervisor = ProcessSupervisor(config)
    supervisor.add_output_listener(status.on_output)
    supervisor.add_error_listener(status.on_error)

    orchestrator = TestOrchestrator(
        config,
        supervisor,
        ProfileCatalog(config.profiles_dir),
        domain_lists=DomainListManager(),
    )

    cancel_event = asyncio.Event()
    _install_cancel_handler(cancel_event)

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("[cyan]Preparing...", total=None)

        def on_profile_started(profile: Profile, index: int, total: int) -> None:
            status.reset()
            progress.update(task, total=total, completed=index, description=f"[cyan]{profile.name}")

        def on_profile_finished(profile: Profile, results: List[ProbeResult]) -> None:
            progress.advance(task)
            passed = sum(1 for r in results if r.success)
            progress.console.print(
                f"[bold]{profile.name}[/bold]: {passed}/{len(results)} succeeded",
                highlight=False,
            )
            engine = status.status
            if engine.last_error and len(results) == 1 and not results[0].success:
                progress.console.print(f"  [dim]engine: {engine.last_error}[/dim]", highlight=False)
            elif args.verbose and engine.desync_profiles is not None:
                progress.console.print(
                    f"  [dim]engine: {engine.desync_profiles} desync profile(s), "
                    f"{engine.hosts_loaded} hosts, {engine.ips_loaded} ips loaded[/dim]",
                    highlight=False,
                )

        def on_probe_finished(result: ProbeResult) -> None:
            if args.verbose:
                render_probe(progress.console, result)

        orchestrator.on_profile_started = on_profile_started
        orchestrator.on_profile_finished = on_profile_finished
        orchestrator.on_probe_finished = on_probe_finished

        try:
            run = await orchestrator.run_tests(
                suite,
                profiles=args.profiles,
                domain=args.domain,
                custom_dpi_url=args.custom_url,
                cancel_event=cancel_event,
                check_domain_blocked=args.check_blocked,
                add_domain_to_list=args.add_to_list,
            )
        except TestRunCancelled:
            console.print("\n[yellow]Test run cancelled, engine stopped.[/yellow]")
            return 130
        except NoProfilesError as e:
            console.print(f"[bold red]Error: {e}[/bold red]")
            return 1
        except ValueError as e:
            console.print(f"[bold red]Error: {e}[/bold red]")
            return 2

    render_summary(run, console, show_details=args.verbose)
    render_best(run, console)

    if args.save_report:
        path = export_report(run, config.resolved_report_dir)
        console.print(f"\n[green]✓[/green] Report saved to {path}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = _load(args)
    except VerifierError as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        return 1

    setup_logging(
        logging.DEBUG if args.debug else logging.INFO,
        config.logs_dir if args.log_file else None,
    )
    LOG.debug(f"Config: {config.to_dict()}")

    try:
        if args.command == "profiles":
            return cmd_profiles(config)
        if args.command == "targets":
            return cmd_targets()
        return asyncio.run(cmd_test(args, config))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        return 130
    except VerifierError as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        LOG.debug("Fatal error", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
