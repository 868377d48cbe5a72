"""Command line entry point for error-relay"""

import asyncio
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlparse

import typer
from rich.console import Console

from .models.errors import ConfigurationError
from .reporter import ErrorReporter
from .utils.config import AppConfig, load_config
from .utils.logger import setup_from_config

app = typer.Typer(help="Error capture pipeline: verify and operate the reporter.")
console = Console()

TEST_MESSAGE = (
    "This is a test error from error-relay. "
    "If you see this at your collector, your configuration is working correctly!"
)


class VerificationError(RuntimeError):
    """Synthetic error sent by the verify command"""


def mask_dsn(dsn: str) -> str:
    """Show scheme, host and the start of the path only"""
    parsed = urlparse(dsn)
    host = parsed.hostname or "unknown"
    path = parsed.path[:15] + "..." if parsed.path else ""
    return f"{parsed.scheme}://{host}{path}"


def _print_checks(config: AppConfig) -> None:
    checks = {
        "ENABLED": config.enabled,
        "DSN": mask_dsn(config.dsn) if config.dsn else "",
        "PROJECT": config.project,
        "ENVIRONMENT": config.environment,
    }
    for key, value in checks.items():
        if value in ("", None, False):
            console.print(f"[yellow]⚠ ERROR_RELAY_{key} is not set[/yellow]")
        else:
            console.print(f"[green]✓[/green] ERROR_RELAY_{key}: {value}")

    if config.delivery.queue:
        console.print("[green]✓[/green] Delivery: background queue (use --sync to send immediately)")
    else:
        console.print("[green]✓[/green] Delivery: synchronous")
    console.print()


def _print_next_steps(config: AppConfig) -> None:
    console.print("Next steps:")
    console.print("  1. Check your collector's logs for the test error")
    console.print("  2. Verify the payload contains error details and source code")
    console.print(
        f"  3. Trigger a real error in your {config.environment} environment "
        f"(autofix: {config.environment in config.autofix_environments})"
    )


def _print_troubleshooting() -> None:
    console.print("Troubleshooting:")
    console.print("  • Verify ERROR_RELAY_DSN is reachable from this host")
    console.print("  • Check firewall rules and network connectivity")
    console.print("  • Review the error_relay log output above")
    console.print("  • Try again with --sync to bypass the queue")


async def send_test_report(config: AppConfig) -> bool:
    """
    Send one synthetic error through the production pipeline

    Returns:
        True if the collector accepted the report
    """
    reporter = ErrorReporter(config)
    await reporter.start()
    try:
        try:
            raise VerificationError(TEST_MESSAGE)
        except VerificationError as e:
            report = await reporter.capture(
                e,
                {
                    "test_report": True,
                    "command": "error-relay verify",
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                },
            )

        if report is None:
            return False

        join = getattr(reporter.delivery, "join", None)
        if join is not None:
            await join()

        return len(reporter.failure_recorder) == 0
    finally:
        await reporter.stop()


@app.command()
def verify(
    sync: bool = typer.Option(False, "--sync", help="Send synchronously instead of through the queue."),
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config."),
) -> None:
    """Send a test error to the collector to verify configuration."""
    config = load_config(config_path)
    setup_from_config(config.logging)

    updates = {"capture": config.capture.model_copy(update={"sample_rate": 1.0})}
    if sync:
        updates["delivery"] = config.delivery.model_copy(update={"queue": False})
    config = config.model_copy(update=updates)

    console.print("Testing error-relay configuration...")
    console.print()
    _print_checks(config)

    try:
        config.ensure_deliverable()
    except ConfigurationError as e:
        console.print(f"[red]Missing required configuration: {e}[/red]")
        raise typer.Exit(code=1)

    console.print("Sending test report...")
    delivered = asyncio.run(send_test_report(config))
    console.print()

    if delivered:
        console.print("[green]✓ Test report delivered![/green]")
        console.print()
        _print_next_steps(config)
        return

    console.print("[red]✗ Failed to deliver test report[/red]")
    console.print()
    _print_troubleshooting()
    raise typer.Exit(code=1)


@app.command("show-config")
def show_config(
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config."),
) -> None:
    """Print the effective configuration (DSN masked)."""
    config = load_config(config_path)
    data = config.model_dump(mode="json")
    if data.get("dsn"):
        data["dsn"] = mask_dsn(data["dsn"])
    console.print_json(data=data)

    issues = config.validate_required()
    if issues:
        console.print()
        for issue in issues:
            console.print(f"[yellow]⚠ {issue}[/yellow]")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address."),
    port: int = typer.Option(10000, help="Bind port."),
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config."),
) -> None:
    """Run the operator endpoints (/health, /failures)."""
    import uvicorn

    from .main import create_app

    uvicorn.run(create_app(load_config(config_path)), host=host, port=port, access_log=True)


if __name__ == "__main__":
    app()
