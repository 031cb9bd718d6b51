"""
Solclaimer CLI
==============
Command-line interface for empty token-account rent reclamation.

Commands:
    solclaimer scan OWNER [--with-meta]
    solclaimer estimate OWNER
    solclaimer close [--live] [--limit N] [--mint MINT ...]
    solclaimer stats OWNER
    solclaimer serve-stats [--host H] [--port P]

Safety:
    `close` is a dry run (scan + fee estimate) unless --live is given.
"""

import asyncio
from typing import List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from solders.pubkey import Pubkey

from solclaimer.modules.reclaimer.engine import ReclamationEngine
from solclaimer.modules.reclaimer.errors import ReclaimerError
from solclaimer.modules.reclaimer.models import ReclamationReport, ScanResultSet, SubAccount
from solclaimer.shared.infrastructure.ledger_client import SolanaLedgerClient
from solclaimer.shared.infrastructure.signer import KeypairSigner
from solclaimer.shared.infrastructure.stats_store import create_stats_store

LAMPORTS_PER_SOL = 1_000_000_000

app = typer.Typer(
    name="solclaimer",
    help="Solclaimer - reclaim rent from empty Solana token accounts",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()


def fmt_sol(lamports: int, digits: int = 6) -> str:
    return f"{lamports / LAMPORTS_PER_SOL:.{digits}f}"


def _owner(value: str) -> Pubkey:
    try:
        return Pubkey.from_string(value)
    except ValueError:
        console.print(f"[bold red]❌ Not a valid address: {value}[/bold red]")
        raise typer.Exit(2)


def _run(coro):
    try:
        return asyncio.run(coro)
    except ReclaimerError as e:
        if getattr(e, "report", None) is not None:
            _print_report(e.report, net_known=False)
        console.print(f"[bold red]❌ {type(e).__name__}: {e}[/bold red]")
        raise typer.Exit(1)


def _accounts_table(accounts: List[SubAccount], limit: int = 50) -> Table:
    table = Table(title="Empty token accounts", show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Account", style="cyan")
    table.add_column("Token")
    table.add_column("Program", style="dim")
    table.add_column("Rent (SOL)", justify="right", style="green")
    for i, a in enumerate(accounts[:limit], 1):
        table.add_row(str(i), a.address, a.label, a.variant.value, fmt_sol(a.lamports))
    return table


def _print_report(report: ReclamationReport, net_known: bool = True) -> None:
    console.print("\n".join(report.log))
    ledger = "[green]YES[/green]" if report.ledger_success else "[red]NO[/red]"
    if report.event is None:
        recorded = "[dim]n/a[/dim]"
    elif report.persisted:
        recorded = "[green]YES[/green]"
    else:
        recorded = f"[red]NO[/red] ({report.persist_error})"
    if net_known:
        net = (
            f"[bold green]{fmt_sol(report.net_lamports)} SOL[/bold green] "
            f"(gross {fmt_sol(report.gross_lamports)} SOL)"
        )
    else:
        net = "[yellow]unknown[/yellow] (after balance unreadable)"
    console.print(Panel.fit(
        f"Batches confirmed: [bold]{report.execution.summary}[/bold]\n"
        f"Closed on-chain (irreversible): {ledger}\n"
        f"Net reclaimed: {net}\n"
        f"Stats recorded: {recorded}",
        title="Reclamation report",
        border_style="cyan",
    ))


# ═══════════════════════════════════════════════════════════════════════════════
# COMMAND: SCAN
# ═══════════════════════════════════════════════════════════════════════════════

@app.command()
def scan(
    owner: str = typer.Argument(..., help="Wallet address to scan"),
    with_meta: bool = typer.Option(False, "--with-meta", help="Resolve token names/symbols"),
):
    """
    List empty token accounts that still hold rent, largest first.
    """
    async def run() -> ScanResultSet:
        ledger = SolanaLedgerClient()
        try:
            engine = ReclamationEngine(ledger, None, create_stats_store())
            found = await engine.scan(_owner(owner))
            if with_meta and len(found):
                await engine.enrich_in_background(found)
            return found
        finally:
            await ledger.close()

    found = _run(run())
    if not len(found):
        console.print("[yellow]No empty token accounts found.[/yellow]")
        return
    console.print(_accounts_table(found.accounts))
    console.print(f"Found [bold]{len(found)}[/bold] empty accounts • total rent [bold green]{fmt_sol(found.total_lamports)} SOL[/bold green]")


# ═══════════════════════════════════════════════════════════════════════════════
# COMMAND: ESTIMATE
# ═══════════════════════════════════════════════════════════════════════════════

@app.command()
def estimate(owner: str = typer.Argument(..., help="Wallet address")):
    """
    Quote network fees for closing every empty account of OWNER.
    """
    async def run():
        ledger = SolanaLedgerClient()
        try:
            engine = ReclamationEngine(ledger, None, create_stats_store())
            pk = _owner(owner)
            found = await engine.scan(pk)
            return found, await engine.estimate(pk, found.accounts)
        finally:
            await ledger.close()

    found, quote = _run(run())
    console.print(
        f"{len(found)} accounts in {quote.batches} batches • rent {fmt_sol(found.total_lamports)} SOL • "
        f"fee ~{fmt_sol(quote.lamports)} SOL • net ~{fmt_sol(found.total_lamports - quote.lamports)} SOL"
    )
    if quote.fallback_batches:
        console.print(f"[yellow]⚠️ {quote.fallback_batches} batch quotes failed; fallback fee used[/yellow]")


# ═══════════════════════════════════════════════════════════════════════════════
# COMMAND: CLOSE
# ═══════════════════════════════════════════════════════════════════════════════

@app.command()
def close(
    live: bool = typer.Option(False, "--live", help="Actually submit close transactions"),
    limit: Optional[int] = typer.Option(None, "--limit", min=1, help="Close at most N accounts (largest first)"),
    mint: Optional[List[str]] = typer.Option(None, "--mint", help="Only close accounts of these mints"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
):
    """
    Close empty token accounts of the configured wallet (SOLANA_PRIVATE_KEY).

    \b
    Examples:
        solclaimer close                 # dry run
        solclaimer close --live --limit 40
    """
    async def run():
        ledger = SolanaLedgerClient()
        try:
            signer = KeypairSigner.from_env(ledger)
            engine = ReclamationEngine(ledger, signer, create_stats_store())
            owner = signer.pubkey
            found = await engine.scan(owner)
            selection = found.accounts
            if mint:
                wanted = set(mint)
                selection = [a for a in selection if a.mint in wanted]
            if limit:
                selection = selection[:limit]
            if not selection:
                console.print("[yellow]Nothing to close.[/yellow]")
                return None

            quote = await engine.estimate(owner, selection)
            rent = sum(a.lamports for a in selection)
            console.print(_accounts_table(selection))
            console.print(
                f"Selected {len(selection)} • rent {fmt_sol(rent)} SOL • "
                f"fee ~{fmt_sol(engine.current_estimate(selection))} SOL in {quote.batches} batches"
            )
            if not live:
                console.print("[yellow]⚠️ DRY RUN - pass --live to submit[/yellow]")
                return None
            if not yes and not typer.confirm(f"Close {len(selection)} accounts?", default=False):
                console.print("[yellow]Aborted.[/yellow]")
                return None
            return await engine.execute(owner, selection)
        finally:
            await ledger.close()

    report = _run(run())
    if report is not None:
        _print_report(report)
        if not report.ledger_success:
            raise typer.Exit(1)


# ═══════════════════════════════════════════════════════════════════════════════
# COMMAND: STATS
# ═══════════════════════════════════════════════════════════════════════════════

@app.command()
def stats(owner: str = typer.Argument(..., help="Wallet address")):
    """
    Show cumulative reclamation history for OWNER.
    """
    record = _run(create_stats_store().get(str(_owner(owner))))
    console.print(
        f"Total closed: [bold]{record.total_closed}[/bold] • "
        f"total reclaimed: [bold green]{fmt_sol(record.total_reclaimed_lamports)} SOL[/bold green]"
    )
    if record.events:
        table = Table(title="Events")
        table.add_column("When (ms)", style="dim")
        table.add_column("Closed", justify="right")
        table.add_column("Net (SOL)", justify="right", style="green")
        table.add_column("Signatures")
        for e in record.events:
            table.add_row(str(e.ts), str(e.closed), fmt_sol(e.lamports), str(len(e.signatures)))
        console.print(table)


# ═══════════════════════════════════════════════════════════════════════════════
# COMMAND: SERVE-STATS
# ═══════════════════════════════════════════════════════════════════════════════

@app.command("serve-stats")
def serve_stats(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port", min=1024, max=65535),
):
    """
    Run the HTTP stats service backed by the configured local store.
    """
    import uvicorn

    from config.settings import Settings
    from solclaimer.api.stats_server import create_app

    # The service itself must not point at another HTTP store.
    backend = "json" if Settings.STATS_BACKEND.lower() == "http" else None
    uvicorn.run(create_app(create_stats_store(backend)), host=host, port=port)


if __name__ == "__main__":
    app()
