"""Larder CLI — talks to the daemon over HTTP."""

import json
from typing import Optional

import httpx
import typer
from rich.console import Console
from rich.table import Table

from larder import __version__
from larder.core.config import get_client_settings

app = typer.Typer(
    name="larder",
    help="Grocery sales analytics and monthly summary refresh",
    no_args_is_help=True,
)
console = Console()


def _client() -> httpx.Client:
    settings = get_client_settings()
    return httpx.Client(
        base_url=settings.host,
        headers={"Authorization": f"Bearer {settings.api_key}"},
        timeout=120,
    )


def _api(method: str, path: str, **kwargs) -> dict:
    """Make an API call to the daemon."""
    with _client() as client:
        try:
            resp = client.request(method, f"/api/v1{path}", **kwargs)
        except httpx.ConnectError:
            settings = get_client_settings()
            console.print(f"[red]Error:[/red] Cannot connect to Larder daemon at {settings.host}")
            console.print("Start the daemon with: [bold]larderd[/bold]")
            raise typer.Exit(1)

        if resp.status_code >= 400:
            detail = resp.json().get("detail", resp.text) if resp.headers.get("content-type", "").startswith("application/json") else resp.text
            console.print(f"[red]Error {resp.status_code}:[/red] {detail}")
            raise typer.Exit(1)

        return resp.json()


def _status_color(status: str) -> str:
    return {"success": "green", "failed": "red", "skipped": "yellow"}.get(status, "dim")


# ─── Refresh Commands ───


@app.command()
def refresh():
    """Rebuild the monthly sales summary now."""
    result = _api("POST", "/refresh")
    color = _status_color(result["status"])
    console.print(f"[{color}]●[/{color}] refresh_monthly_summary — {result['status']}")
    console.print(f"  Run: {result['run_id']}")


@app.command()
def summary(
    start: Optional[str] = typer.Option(None, "--from", help="First month (YYYY-MM)"),
    end: Optional[str] = typer.Option(None, "--to", help="Last month (YYYY-MM)"),
):
    """Show the monthly sales summary as of the last refresh."""
    params = {k: v for k, v in {"start": start, "end": end}.items() if v}
    result = _api("GET", "/monthly-sales", params=params or None)

    if not result["months"]:
        console.print("[dim]Monthly summary is empty — run [bold]larder refresh[/bold][/dim]")
        return

    table = Table(title="Monthly sales")
    table.add_column("Month", style="bold")
    table.add_column("Orders", justify="right")
    table.add_column("Revenue", justify="right")
    table.add_column("Avg order", justify="right")

    for m in result["months"]:
        table.add_row(
            m["year_month"],
            str(m["order_count"]),
            str(m["total_revenue"]),
            str(m["avg_order_value"]),
        )

    console.print(table)


@app.command()
def runs(
    last: int = typer.Option(10, "--last", "-l", help="Number of runs to show"),
    status: Optional[str] = typer.Option(None, "--status", "-s", help="Only runs with this status (e.g. failed)"),
):
    """Show recent refresh runs."""
    params = {"limit": last}
    if status:
        params["status"] = status
    result = _api("GET", "/runs", params=params)

    table = Table(title="Refresh runs")
    table.add_column("ID", style="dim", max_width=8)
    table.add_column("Status")
    table.add_column("Trigger")
    table.add_column("Months", justify="right")
    table.add_column("Duration")
    table.add_column("Time")

    for r in result["runs"]:
        color = _status_color(r["status"])
        duration = f"{r['duration_ms']}ms" if r.get("duration_ms") is not None else "—"

        table.add_row(
            r["id"][:8],
            f"[{color}]{r['status']}[/{color}]",
            r["trigger"],
            str(r["months"]) if r.get("months") is not None else "—",
            duration,
            r.get("created_at", "—") or "—",
        )

    console.print(table)


# ─── Reporting Commands ───


@app.command()
def kpis(top: int = typer.Option(10, "--top", "-t", help="Rows in top-N rankings")):
    """Show KPIs over the live tables (JSON)."""
    result = _api("GET", "/reports/kpis", params={"top": top})
    console.print_json(json.dumps(result, default=str))


@app.command()
def churn(days: Optional[int] = typer.Option(None, "--days", "-d", help="Inactivity window in days")):
    """List customers with no recent orders."""
    result = _api("GET", "/reports/churn", params={"days": days} if days else None)

    console.print(f"{result['total']} customers without an order since {result['cutoff']}")
    if not result["customers"]:
        return

    table = Table()
    table.add_column("Customer", style="bold")
    table.add_column("Name")
    table.add_column("City")
    table.add_column("Last order")
    for c in result["customers"]:
        table.add_row(
            str(c["customer_id"]),
            c.get("full_name") or "—",
            c.get("city") or "—",
            c.get("last_order_date") or "—",
        )
    console.print(table)


@app.command()
def quality():
    """Run the data-quality checks."""
    result = _api("GET", "/reports/quality")

    table = Table(title="Data quality")
    table.add_column("Check", style="bold")
    table.add_column("Offending rows", justify="right")
    for name, count in result["issues"].items():
        color = "green" if count == 0 else "red"
        table.add_row(name, f"[{color}]{count}[/{color}]")
    console.print(table)

    if result["passed"]:
        console.print("[green]All checks passed[/green]")
    else:
        raise typer.Exit(1)


# ─── Daemon ───


@app.command()
def version():
    """Show Larder version."""
    console.print(f"larder v{__version__}")


@app.command()
def status():
    """Show daemon status."""
    with _client() as client:
        try:
            resp = client.get("/health")
            data = resp.json()
            console.print(f"[green]●[/green] Larder daemon v{data['version']} — running")
            if data.get("refresh_running"):
                console.print("  [yellow]Refresh in progress[/yellow]")
            jobs = data.get("scheduler_jobs", [])
            if jobs:
                for j in jobs:
                    console.print(f"  {j['id']} → next: {j.get('next_run') or '—'}")
            else:
                console.print("  No scheduled jobs")
        except httpx.ConnectError:
            settings = get_client_settings()
            console.print(f"[red]●[/red] Daemon not running at {settings.host}")


if __name__ == "__main__":
    app()
