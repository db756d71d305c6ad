# src/cli/runner.py

"""Headless CLI runners: scheduled refresh and product tracking."""

import asyncio
import json
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from src.models.tracked_product import TrackedProduct
from src.notify.mailer import NotificationDispatcher
from src.services.batch_selector import SelectionMode
from src.services.refresh_orchestrator import (
    RefreshConfig,
    RefreshOrchestrator,
    RefreshResult,
)
from src.services.tracking import track_product
from src.storage.product_store import ProductStore

logger = logging.getLogger("price_tracker.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def build_response(
    result: RefreshResult, mode: SelectionMode,
) -> dict[str, object]:
    """Shape a run result as the trigger's JSON payload."""
    if result.total == 0:
        message = (
            "No products found"
            if mode is SelectionMode.FULL
            else "No stale products found"
        )
        return {"message": message, "data": []}
    return {
        "message": "Products updated successfully",
        "data": [p.to_dict() for p in result.processed],
        "processed": len(result.processed),
        "total": result.total,
    }


def build_error(exc: BaseException) -> dict[str, object]:
    """Shape a run-level failure as the trigger's JSON payload."""
    if isinstance(exc, asyncio.TimeoutError):
        return {
            "message": "Error in refresh run: time budget exceeded",
            "error": True,
        }
    return {"message": f"Error in refresh run: {exc}", "error": True}


def _print_table(products: list[TrackedProduct]) -> None:
    """Render a Rich table of refreshed products to stdout."""
    table = Table(
        title="Refreshed Products",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("#", style="dim", width=4)
    table.add_column("Title", max_width=50)
    table.add_column("Price", justify="right", style="green")
    table.add_column("Low", justify="right")
    table.add_column("High", justify="right")
    table.add_column("Avg", justify="right")
    table.add_column("Stock", justify="center")
    table.add_column("Subs", justify="right", style="magenta")

    for idx, p in enumerate(products, 1):
        table.add_row(
            str(idx),
            p.title[:50],
            f"{p.currency}{p.current_price:,.2f}",
            f"{p.lowest_price:,.2f}",
            f"{p.highest_price:,.2f}",
            f"{p.average_price:,.2f}",
            "✗" if p.is_out_of_stock else "✓",
            str(len(p.users)),
        )

    Console().print(table)


def _emit(payload: dict[str, object]) -> None:
    json.dump(payload, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")


async def run_refresh(
    mode: SelectionMode,
    cap: int | None,
    output_format: str = "json",
    db_path: Path | None = None,
    config: RefreshConfig | None = None,
) -> int:
    """Run one scheduled refresh and return an exit code (0=ok, 1=fail)."""
    config = config or RefreshConfig.from_settings()
    dispatcher = NotificationDispatcher()
    store: ProductStore | None = None

    _err.print(
        f"[bold]Refreshing products[/bold] "
        f"[dim]mode={mode.value} batch={config.batch_size} "
        f"budget={config.run_time_budget:.0f}s[/dim]"
    )
    try:
        store = ProductStore(db_path)
        orchestrator = RefreshOrchestrator(
            store, dispatcher=dispatcher, config=config,
        )
        result = await asyncio.wait_for(
            orchestrator.refresh(mode, cap),
            timeout=config.run_time_budget,
        )
    except Exception as exc:
        logger.error("Refresh run failed: %s", exc, exc_info=True)
        _err.print(
            f"[red]Refresh run failed: {str(exc) or type(exc).__name__}[/red]"
        )
        _emit(build_error(exc))
        await dispatcher.drain(config.notification_grace_period)
        if store is not None:
            store.close()
        return 1

    for url in result.failed:
        _err.print(f"[yellow]Not refreshed: {url}[/yellow]")
    _err.print(
        f"[green]✓ {len(result.processed)} of {result.total}"
        f" products refreshed[/green]"
    )

    if output_format == "table":
        _print_table(result.processed)
    else:
        _emit(build_response(result, mode))

    await dispatcher.drain(config.notification_grace_period)
    store.close()
    return 0


async def run_track(
    url: str,
    email: str | None,
    target_price: float | None,
    db_path: Path | None = None,
) -> int:
    """Start tracking *url* and return an exit code (0=ok, 1=fail)."""
    dispatcher = NotificationDispatcher()
    store = ProductStore(db_path)
    try:
        record = await track_product(
            store,
            url,
            email=email,
            target_price=target_price,
            dispatcher=dispatcher,
        )
        await dispatcher.drain(
            RefreshConfig.from_settings().notification_grace_period
        )
    finally:
        store.close()

    if record is None:
        _err.print(f"[red]Could not scrape {url}[/red]")
        return 1

    _err.print(
        f"[green]✓ Tracking {record.title}"
        f" at {record.currency}{record.current_price:,.2f}[/green]"
    )
    _emit({"message": "Product tracked", "data": [record.to_dict()]})
    return 0
