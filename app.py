"""
app.py
──────
Asset Health Engine: command-line entry point.

Commands:
  init-db [--demo]     Create tables (optionally seed a simulated demo site)
  check DEVICE_ID      Score → anomalies → thresholds → persisted alerts
  score DEVICE_ID      Compute (or reuse) the device health score
  analyze DEVICE_ID    Narrative analysis from the diagnostic advisor
  report SITE_ID       Site maintenance report (--csv to export device rows)

Results are printed as JSON.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict

from assethealth.advisor.diagnostics import Analyzed, get_ai_health_analysis
from assethealth.analytics.health_index import compute_health_score
from assethealth.config.settings import settings
from assethealth.data import store
from assethealth.maintenance.errors import MaintenanceError
from assethealth.maintenance.lifecycle import run_health_check
from assethealth.reporting.site_report import generate_maintenance_report

logger = logging.getLogger("assethealth")


def _print(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


def cmd_init_db(args: argparse.Namespace) -> int:
    store.initialize_db(seed_demo=args.demo, force_reseed=args.reseed)
    logger.info("Database ready at %s", settings.DATABASE_URL)
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    result = run_health_check(args.device_id)
    _print({
        "device_id": result.device_id,
        "health_score": result.health_score,
        "alerts": [a.model_dump(mode="json") for a in result.alerts],
    })
    return 0


def cmd_score(args: argparse.Namespace) -> int:
    device = store.get_device(args.device_id)
    device_type = device.type if device else ""
    _print({"device_id": args.device_id, "health_score": compute_health_score(args.device_id, device_type)})
    return 0


def cmd_analyze(args: argparse.Namespace) -> int:
    outcome = get_ai_health_analysis(args.device_id)
    if isinstance(outcome, Analyzed):
        _print({"status": "analyzed", "prediction_id": outcome.prediction_id, **asdict(outcome.analysis)})
        return 0
    _print({"status": "unavailable", "reason": outcome.reason, **asdict(outcome.analysis)})
    return 1


def cmd_report(args: argparse.Namespace) -> int:
    report = generate_maintenance_report(args.site_id)
    if args.csv:
        report.to_frame().to_csv(args.csv, index=False)
        logger.info("Device rows written to %s", args.csv)
    print(report.model_dump_json(indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="assethealth", description="Asset health and predictive maintenance")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init-db", help="create tables")
    p.add_argument("--demo", action="store_true", help="seed a simulated demo site")
    p.add_argument("--reseed", action="store_true", help="replace existing demo data")
    p.set_defaults(func=cmd_init_db)

    for name, func, help_text in (
        ("check", cmd_check, "run a full health check"),
        ("score", cmd_score, "compute the health score"),
        ("analyze", cmd_analyze, "advisor analysis"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("device_id", type=int)
        p.set_defaults(func=func)

    p = sub.add_parser("report", help="site maintenance report")
    p.add_argument("site_id", type=int)
    p.add_argument("--csv", help="write per-device rows to this CSV file")
    p.set_defaults(func=cmd_report)
    return parser


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args = build_parser().parse_args(argv)
    store.initialize_db()
    try:
        return args.func(args)
    except MaintenanceError as exc:
        logger.error("%s", exc)
        return 2


if __name__ == "__main__":
    sys.exit(main())
