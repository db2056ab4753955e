from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv

app = typer.Typer(help="leakfinder CLI: detect recurring bank fees and subscriptions in CSV exports")


def _setup() -> None:
    load_dotenv()
    level = (os.environ.get("LOG_LEVEL") or "INFO").strip().upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format="%(levelname)s %(name)s: %(message)s")


def _mapping(date_col: str, label_col: str, amount_col: str):
    from src.leakfinder.scan.models import ColumnMapping

    return ColumnMapping(date=date_col, label=label_col, amount=amount_col)


@app.command("init-db")
def init_db_cmd():
    _setup()
    from src.db.init_db import init_db

    init_db()
    typer.echo("Database initialized.")


@app.command("analyze")
def analyze_cmd(
    path: Path = typer.Argument(..., exists=True, dir_okay=False),
    date_col: str = typer.Option(..., "--date", help="Column holding the transaction date"),
    label_col: str = typer.Option(..., "--label", help="Column holding the bank label"),
    amount_col: str = typer.Option(..., "--amount", help="Column holding the signed amount"),
    plan: bool = typer.Option(False, help="Also build the action plan (template steps unless a key is set)"),
):
    """Run the detection pipeline on a local CSV and print the findings as JSON. Nothing is stored."""
    _setup()
    from src.core.text_generation import default_generator
    from src.leakfinder.config import load_config
    from src.leakfinder.scan.csv_io import InputError, decode_bytes
    from src.leakfinder.scan.pipeline import analyze_csv_text
    from src.leakfinder.scan.plan import build_plan_items

    cfg, _ = load_config()
    try:
        result = analyze_csv_text(decode_bytes(path.read_bytes()), mapping=_mapping(date_col, label_col, amount_col), cfg=cfg)
    except InputError as e:
        typer.echo(f"Invalid input: {e}", err=True)
        raise typer.Exit(code=2)

    out = result.model_dump(mode="json")
    out["total_gain_minor_units"] = result.total_gain_minor_units
    if plan:
        items = build_plan_items(
            result.findings,
            generator=default_generator(cfg.text_generation),
            cfg=cfg.plan,
            currency=cfg.detection.currency,
        )
        out["plan"] = [it.model_dump(mode="json") for it in items]
    typer.echo(json.dumps(out, indent=2, ensure_ascii=False))


@app.command("import")
def import_cmd(
    path: Path = typer.Argument(..., exists=True, dir_okay=False),
    user: str = typer.Option("local", help="User id owning the upload and scan"),
    date_col: str = typer.Option(..., "--date"),
    label_col: str = typer.Option(..., "--label"),
    amount_col: str = typer.Option(..., "--amount"),
):
    """Store a CSV for `user`, scan it and persist findings and plan, as the upload + scan API does."""
    _setup()
    from src.core.storage import UploadStore
    from src.core.text_generation import default_generator
    from src.db.init_db import init_db
    from src.db.session import get_session
    from src.leakfinder.config import load_config
    from src.leakfinder.errors import NotFound, QuotaExceeded
    from src.leakfinder.scan.csv_io import InputError
    from src.leakfinder.service import create_csv_upload, scan_from_upload

    cfg, _ = load_config()
    init_db()
    store = UploadStore(cfg.storage.uploads_dir)
    with get_session() as session:
        try:
            up, _preview = create_csv_upload(
                session, store, user_id=user, name=path.name, content=path.read_bytes(), cfg=cfg
            )
            result = scan_from_upload(
                session,
                store,
                user_id=user,
                upload_id=up.id,
                mapping=_mapping(date_col, label_col, amount_col),
                cfg=cfg,
                generator=default_generator(cfg.text_generation),
            )
        except (InputError, NotFound, QuotaExceeded) as e:
            typer.echo(f"Import failed: {e}", err=True)
            raise typer.Exit(code=2)
    typer.echo(json.dumps({"upload_id": up.id, **result}, indent=2, ensure_ascii=False))


@app.command("demo")
def demo_cmd(
    user: str = typer.Option("local", help="User id receiving the demo scan"),
    reset: bool = typer.Option(False, help="Delete the user's existing scans first"),
    out: Optional[Path] = typer.Option(None, help="Also write the plan HTML report here"),
):
    _setup()
    from src.core.exports import render_plan_html_report
    from src.db.init_db import init_db
    from src.db.session import get_session
    from src.leakfinder.config import load_config
    from src.leakfinder.service import create_demo_scan, current_plan, delete_scans

    cfg, _ = load_config()
    init_db()
    with get_session() as session:
        if reset:
            delete_scans(session, user_id=user)
        result = create_demo_scan(session, user_id=user, cfg=cfg)
        if out is not None:
            plan = current_plan(session, user)
            out.write_text(render_plan_html_report(plan), encoding="utf-8")
            typer.echo(f"Wrote {out}", err=True)
    typer.echo(json.dumps({"scan_id": result["scan_id"], "plan_id": result["plan_id"], "findings": len(result["findings"])}))


if __name__ == "__main__":
    app()
