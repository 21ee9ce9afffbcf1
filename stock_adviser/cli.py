"""
Stock Adviser — CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Validate inputs.
  4. Execute action (DB init, ingestion, generation, lifecycle change).
  5. Report result to stdout.

Install and run::

    pip install -e .
    stock-adviser --help
    stock-adviser init-db
    stock-adviser add-user alice --sector Technology --stop-loss 8
    stock-adviser ingest AAPL MSFT
    stock-adviser generate alice
    stock-adviser execute alice <recommendation-id> --action buy --price 101.5 --outcome profitable

The scheduling trigger is out of scope: run ``generate --all`` and ``expire``
from cron or any other scheduler.
"""

from __future__ import annotations

import json
from decimal import Decimal
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="stock-adviser",
    help="Stock Adviser — scored trading recommendations per user.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from stock_adviser.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    """Set up logging from config."""
    from stock_adviser.utils.logging import configure_logging
    configure_logging(config.logging)


def _open_store(config, db_path: Optional[str] = None):
    """Open the SQLite store, applying the schema if needed."""
    from stock_adviser.storage.sqlite_store import SqliteStore

    db_config = config.database
    if db_path:
        db_config = db_config.model_copy(update={"db_path": db_path})
    return SqliteStore(db_config)


def _build_orchestrator(config, store):
    from stock_adviser.ingestion.stored_provider import StoredSnapshotProvider
    from stock_adviser.recommendations.orchestrator import RecommendationOrchestrator

    return RecommendationOrchestrator(
        market_data=StoredSnapshotProvider(store),
        store=store,
        config=config.recommendations,
    )


def _echo_recommendation(rec) -> None:
    typer.echo(
        f"  {rec.id}  {rec.symbol:<6} {rec.action.value:<11} "
        f"conf={rec.confidence:>6}  target={rec.target_price}  stop={rec.stop_loss}  "
        f"risk={rec.risk_level.value}  status={rec.status.value}"
    )


_DB_PATH_OPTION = typer.Option(None, "--db-path", help="Override DB path from config.")
_CONFIG_OPTION = typer.Option(None, "--config", help="Path to TOML config file.")


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("init-db")
def init_db(
    db_path: Optional[str] = _DB_PATH_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Initialize the SQLite database and apply the full schema.

    Safe to run multiple times — all DDL uses IF NOT EXISTS.
    """
    from stock_adviser.db.connection import get_connection
    from stock_adviser.db.schema import ALL_TABLE_NAMES, apply_schema

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    target_path = db_path or config.database.db_path
    typer.echo(f"Initializing database at: {target_path}")

    with get_connection(
        target_path,
        wal_mode=config.database.wal_mode,
        busy_timeout_ms=config.database.busy_timeout_ms,
    ) as conn:
        apply_schema(conn)

    typer.echo(f"  Tables: {len(ALL_TABLE_NAMES)} created/verified.")
    typer.echo("[OK] Database ready.")


@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = _CONFIG_OPTION,
    show_full: bool = typer.Option(False, "--full", help="Print full config as JSON."),
) -> None:
    """Validate the configuration file and print parsed values.

    Exits with code 1 if the config fails validation.
    """
    config = _load_config_or_exit(config_path)
    rec = config.recommendations

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Database path:     {config.database.db_path}")
    typer.echo(f"  Min confidence:    {rec.min_confidence}")
    typer.echo(f"  Validity (days):   {rec.validity_days}")
    typer.echo(f"  Watchlist cap:     {rec.max_watchlist_size}")
    typer.echo(f"  Batch size/pause:  {rec.batch_size} / {rec.batch_pause_seconds}s")
    typer.echo(f"  MACD signal mode:  {config.indicators.macd_signal_mode}")
    typer.echo(f"  API key set:       {bool(config.market_data.api_key)}")
    typer.echo(f"  Log level:         {config.logging.level}")
    typer.echo(f"  Debug mode:        {config.debug}")

    if show_full:
        dump = config.model_dump(mode="json")
        if dump["market_data"].get("api_key"):
            dump["market_data"]["api_key"] = "***"
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(dump, indent=2))

    typer.echo("")
    typer.echo("[OK] Config valid.")


@app.command("add-user")
def add_user(
    user_id: str = typer.Argument(..., help="Unique user identifier."),
    email: str = typer.Option("", "--email"),
    display_name: str = typer.Option("", "--name"),
    sectors: list[str] = typer.Option([], "--sector", help="Preferred sector (repeatable)."),
    stop_loss: float = typer.Option(10.0, "--stop-loss", help="Stop-loss percentage."),
    take_profit: float = typer.Option(20.0, "--take-profit", help="Take-profit percentage."),
    db_path: Optional[str] = _DB_PATH_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Create or replace a user and their trading strategy."""
    from pydantic import ValidationError

    from stock_adviser.models.user import SellStrategy, TradingStrategy, User

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        user = User(
            user_id=user_id,
            email=email,
            display_name=display_name,
            trading_strategy=TradingStrategy(
                preferred_sectors=tuple(sectors),
                sell_strategy=SellStrategy(
                    stop_loss_percentage=Decimal(str(stop_loss)),
                    take_profit_percentage=Decimal(str(take_profit)),
                ),
            ),
        )
    except ValidationError as exc:
        typer.echo(f"[ERROR] Invalid user: {exc}", err=True)
        raise typer.Exit(code=1)

    _open_store(config, db_path).save_user(user)
    typer.echo(f"[OK] Saved user {user.user_id} (sectors: {', '.join(sectors) or 'none'}).")


@app.command("ingest")
def ingest(
    symbols: Optional[list[str]] = typer.Argument(None, help="Symbols to fetch (default: core watchlist)."),
    db_path: Optional[str] = _DB_PATH_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Fetch live snapshots from Alpha Vantage and store them locally."""
    from stock_adviser.exceptions import MarketDataError
    from stock_adviser.ingestion.alpha_vantage_client import (
        AlphaVantageClient,
        AlphaVantageProvider,
    )
    from stock_adviser.recommendations.watchlist import CORE_SYMBOLS

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    store = _open_store(config, db_path)

    targets = [s.strip().upper() for s in symbols] if symbols else list(CORE_SYMBOLS)
    typer.echo(f"Ingesting {len(targets)} symbol(s) ...")

    try:
        client = AlphaVantageClient(config.market_data)
    except MarketDataError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    with client:
        result = AlphaVantageProvider(client, config.indicators).fetch_snapshots(targets)

    for snapshot in result.snapshots:
        store.save_snapshot(snapshot)
        typer.echo(f"  {snapshot.symbol:<6} price={snapshot.price}")
    for symbol in result.missing:
        typer.echo(f"  {symbol:<6} no data")
    for symbol, error in result.failures.items():
        typer.echo(f"  {symbol:<6} FAILED: {error}", err=True)

    typer.echo(
        f"[OK] Stored {len(result.snapshots)} snapshot(s); "
        f"{len(result.missing)} missing, {len(result.failures)} failed."
    )
    if result.failures and not result.snapshots:
        raise typer.Exit(code=1)


@app.command("generate")
def generate(
    user_id: Optional[str] = typer.Argument(None, help="User to generate for."),
    all_users: bool = typer.Option(False, "--all", help="Generate for every user."),
    db_path: Optional[str] = _DB_PATH_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Generate recommendations from the stored snapshots."""
    from stock_adviser.exceptions import UserNotFoundError

    if not user_id and not all_users:
        typer.echo("[ERROR] Pass a USER_ID or --all.", err=True)
        raise typer.Exit(code=1)

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    orchestrator = _build_orchestrator(config, _open_store(config, db_path))

    if all_users:
        results = orchestrator.generate_for_all_users()
    else:
        try:
            results = {user_id: orchestrator.generate_for_user(user_id)}
        except UserNotFoundError as exc:
            typer.echo(f"[ERROR] {exc}", err=True)
            raise typer.Exit(code=1)

    for uid, result in results.items():
        if result.error:
            typer.echo(f"User {uid}: FAILED: {result.error}", err=True)
            continue
        typer.echo(
            f"User {uid}: created={len(result.created)} "
            f"existing={len(result.skipped_existing)} "
            f"below_threshold={len(result.below_threshold)} "
            f"no_data={len(result.skipped_no_data)} "
            f"failures={len(result.failures)} expired={len(result.expired)}"
        )
        for rec in result.created:
            _echo_recommendation(rec)
        for failure in result.failures:
            typer.echo(f"  {failure.symbol:<6} FAILED: {failure.error}", err=True)


@app.command("generate-symbol")
def generate_symbol(
    user_id: str = typer.Argument(...),
    symbol: str = typer.Argument(...),
    db_path: Optional[str] = _DB_PATH_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Return the live recommendation for one symbol, generating it if needed."""
    from stock_adviser.exceptions import UserNotFoundError

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    orchestrator = _build_orchestrator(config, _open_store(config, db_path))

    try:
        rec = orchestrator.generate_for_symbol(user_id, symbol)
    except UserNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    if rec is None:
        typer.echo(f"No recommendation for {symbol.upper()} (no data or low confidence).")
        return
    _echo_recommendation(rec)
    if rec.reasoning:
        typer.echo(f"  Reasoning: {rec.reasoning}")
    if rec.key_factors:
        typer.echo(f"  Key factors: {', '.join(rec.key_factors)}")


@app.command("execute")
def execute(
    user_id: str = typer.Argument(...),
    recommendation_id: str = typer.Argument(...),
    action: str = typer.Option(..., "--action", help="Action actually taken (e.g. buy)."),
    price: Optional[float] = typer.Option(None, "--price", help="Price actually traded at."),
    outcome: Optional[str] = typer.Option(
        None, "--outcome", help="profitable | loss | breakeven (writes history)."
    ),
    db_path: Optional[str] = _DB_PATH_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Mark a recommendation executed, optionally closing it into history."""
    from stock_adviser.exceptions import AdviserError
    from stock_adviser.recommendations.outcome import OutcomeTracker
    from stock_adviser.taxonomy.recommendation_taxonomy import (
        RecommendationAction,
        RecommendationOutcome,
    )

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        actual_action = RecommendationAction(action.lower())
        actual_outcome = RecommendationOutcome(outcome.lower()) if outcome else None
    except ValueError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    tracker = OutcomeTracker(_open_store(config, db_path))
    try:
        result = tracker.execute(
            user_id,
            recommendation_id,
            actual_action,
            Decimal(str(price)) if price is not None else None,
            actual_outcome,
        )
    except AdviserError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    _echo_recommendation(result.recommendation)
    if result.history is not None:
        typer.echo(
            f"  History: outcome={result.history.outcome.value} "
            f"profit_loss={result.history.profit_loss} "
            f"({result.history.profit_loss_percentage}%)"
        )


@app.command("cancel")
def cancel(
    user_id: str = typer.Argument(...),
    recommendation_id: str = typer.Argument(...),
    db_path: Optional[str] = _DB_PATH_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Cancel an active recommendation."""
    from stock_adviser.exceptions import AdviserError
    from stock_adviser.recommendations.outcome import OutcomeTracker

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        rec = OutcomeTracker(_open_store(config, db_path)).cancel(user_id, recommendation_id)
    except AdviserError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    _echo_recommendation(rec)


@app.command("expire")
def expire(
    user_id: Optional[str] = typer.Argument(None, help="User to sweep (default: all users)."),
    db_path: Optional[str] = _DB_PATH_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Move active recommendations past their validity window to expired."""
    from stock_adviser.recommendations.outcome import OutcomeTracker

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    store = _open_store(config, db_path)
    tracker = OutcomeTracker(store)

    user_ids = [user_id] if user_id else [u.user_id for u in store.list_users()]
    total = 0
    for uid in user_ids:
        swept = tracker.sweep_expired(uid)
        total += len(swept)
        for rec in swept:
            typer.echo(f"  {uid}: expired {rec.symbol} ({rec.id})")
    typer.echo(f"[OK] Expired {total} recommendation(s).")


@app.command("list-recommendations")
def list_recommendations(
    user_id: str = typer.Argument(...),
    active_only: bool = typer.Option(False, "--active", help="Only active recommendations."),
    limit: int = typer.Option(50, "--limit"),
    db_path: Optional[str] = _DB_PATH_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """List a user's recommendations, newest first."""
    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    store = _open_store(config, db_path)

    recs = (
        store.get_active_recommendations(user_id)[:limit]
        if active_only
        else store.list_recommendations(user_id, limit)
    )
    if not recs:
        typer.echo(f"No recommendations for {user_id}.")
        return
    for rec in recs:
        _echo_recommendation(rec)


@app.command("history")
def history(
    user_id: str = typer.Argument(...),
    limit: int = typer.Option(100, "--limit"),
    db_path: Optional[str] = _DB_PATH_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Show closed recommendation outcomes for a user."""
    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    records = _open_store(config, db_path).list_history(user_id, limit)
    if not records:
        typer.echo(f"No history for {user_id}.")
        return
    for h in records:
        typer.echo(
            f"  {h.closed_at:%Y-%m-%d} {h.symbol:<6} {h.original_action.value:<11} "
            f"target={h.original_price} actual={h.actual_price} "
            f"outcome={h.outcome.value} pnl={h.profit_loss} ({h.profit_loss_percentage}%)"
        )


if __name__ == "__main__":
    app()
