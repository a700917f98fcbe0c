"""
Container session commands.

Runs the assistant in a slot, opens shells, and rebuilds the project image.
Image builds are rendered in a fixed Live region; the session itself then
takes over the terminal.
"""

import time
import typing as t
from collections.abc import Callable

from rich.console import Console
from rich.live import Live
from rich.text import Text

from slotbox.containers.manager import ContainerManager
from slotbox.containers.orchestrator import SessionOrchestrator
from slotbox.containers.runner import RunMode
from slotbox.context import ProjectContext

console = Console()


def _run_with_live_progress(status: str, runner: Callable[[Callable[[str], None]], t.Any]) -> t.Any:
    """
    Execute a callable while rendering its progress logs inside a fixed Live region.
    """
    console.print(f"[bold cyan]{status}[/bold cyan]")

    build_lines: list[str] = []

    with Live(console=console, auto_refresh=True, refresh_per_second=4, transient=True) as live:

        def live_progress(line: str) -> None:
            clean = line.rstrip("\n")
            if not clean:
                return
            build_lines.append(clean)
            if len(build_lines) > 20:
                build_lines.pop(0)

            output_text = Text()
            for log_line in build_lines[-15:]:
                output_text.append(log_line + "\n", style="dim")
            live.update(output_text)

        return runner(live_progress)


def _prepare_image(
    orchestrator: SessionOrchestrator, ctx: ProjectContext, force: bool = False
) -> None:
    """Build the project image if needed, showing progress and elapsed time."""
    build_start_time = time.time()
    try:
        built = _run_with_live_progress(
            "Checking project image...",
            lambda progress_cb: orchestrator.prepare_image(
                ctx, force=force, progress_callback=progress_cb
            ),
        )
    except Exception:
        build_elapsed = time.time() - build_start_time
        console.print(f"[bold red]✗[/bold red] Build failed after {build_elapsed:.1f}s\n")
        raise

    if built:
        build_elapsed = time.time() - build_start_time
        console.print(
            f"[bold green]✓[/bold green] Image {ctx.image_tag} built ({build_elapsed:.1f}s)\n"
        )
    else:
        console.print(f"[bold green]✓[/bold green] Image {ctx.image_tag} is up to date\n")


def _orchestrator() -> SessionOrchestrator:
    return SessionOrchestrator(ContainerManager())


def slot_command(
    ctx: ProjectContext, ordinal: int, args: list[str], mode: RunMode = RunMode.INTERACTIVE
) -> int:
    """
    Run the assistant in a specific slot.

    Args:
        ctx: Project context
        ordinal: Slot number
        args: Arguments passed through to the assistant
        mode: Run mode

    Returns:
        Container exit code
    """
    orchestrator = _orchestrator()
    # Fail on a missing slot before spending time on a build
    orchestrator.slots.get_slot(ctx, ordinal)
    _prepare_image(orchestrator, ctx)
    return orchestrator.launch_slot(ctx, ordinal, mode, args)


def run_command(ctx: ProjectContext, args: list[str], mode: RunMode = RunMode.INTERACTIVE) -> int:
    """
    Run the assistant in the first ready slot.

    Returns:
        Container exit code
    """
    orchestrator = _orchestrator()
    slot = orchestrator.slots.pick_ready(ctx)
    _prepare_image(orchestrator, ctx)
    console.print(f"[dim]Using slot {slot.ordinal}[/dim]")
    return orchestrator.launch_slot(ctx, slot.ordinal, mode, args)


def shell_command(ctx: ProjectContext, args: list[str]) -> int:
    """
    Open a shell in the project image.

    ``shell admin`` opens a persistent shell with sudo and no firewall;
    its changes are committed into the project image on exit. Anything else
    opens a throwaway shell.

    Returns:
        Shell exit code
    """
    orchestrator = _orchestrator()
    _prepare_image(orchestrator, ctx)

    if args and args[0] == "admin":
        console.print(
            "[yellow]⚠[/yellow]  Admin shell: sudo enabled, firewall disabled. "
            "Changes are saved to the project image on exit.\n"
        )
        exit_code = orchestrator.admin_shell(ctx)
        console.print(f"[bold green]✓[/bold green] Saved changes to {ctx.image_tag}")
        return exit_code

    return orchestrator.transient_shell(ctx, args)


def rebuild_command(ctx: ProjectContext) -> None:
    """Rebuild the project image from scratch, ignoring the layer cache."""
    orchestrator = _orchestrator()
    _prepare_image(orchestrator, ctx, force=True)
