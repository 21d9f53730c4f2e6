"""CLI entrypoint for the jail roster collection pipeline."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from jaildata.common.config_loader import AppConfig, load_app_config
from jaildata.common.constants import (
    DEFAULT_QUERY_LIMIT,
    DEFAULT_SURNAME_LIMIT,
    EXIT_HARD_FAIL,
    EXIT_PARTIAL,
    EXIT_SUCCESS,
)
from jaildata.common.errors import PipelineError
from jaildata.common.fs import dumps
from jaildata.common.ids import generate_run_id
from jaildata.common.logging import build_logger, log_event
from jaildata.common.parameters import ParameterStore
from jaildata.common.time_utils import utc_today_iso
from jaildata.harvest.reports import write_run_summary
from jaildata.harvest.runner import run_collection
from jaildata.ingest.ingestor import BatchIngestor
from jaildata.storage.store import KeyedStore

COMMANDS = ("facilities", "collect", "ingest", "recent", "by-facility", "by-surname", "lookup")
HARD_FAIL_CODES = {"CONFIG_ERROR"}


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=COMMANDS)
    parser.add_argument("--facility", default=None)
    parser.add_argument("--message-file", dest="message_files", nargs="+", default=[])
    parser.add_argument("--start-date", default=None)
    parser.add_argument("--end-date", default=None)
    parser.add_argument("--surname", default=None)
    parser.add_argument("--last-name", default="")
    parser.add_argument("--first-name", default="")
    parser.add_argument("--middle-name", default="")
    parser.add_argument("--date", default=None)
    parser.add_argument("--limit", type=int, default=None)
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--data-dir", default="./data")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    parser.add_argument("--use-parameter-store", action="store_true")
    parser.add_argument("--strict", action="store_true")
    return parser.parse_args(argv)


def _emit(payload) -> None:
    sys.stdout.write(dumps(payload, indent=2))
    sys.stdout.write("\n")


def _require(args: argparse.Namespace, *names: str) -> None:
    missing = [f"--{name.replace('_', '-')}" for name in names if not getattr(args, name)]
    if missing:
        raise PipelineError(f"{args.command} requires {', '.join(missing)}")


def _store(config: AppConfig) -> KeyedStore:
    return KeyedStore(
        config.storage.table_name,
        index_name=config.storage.index_name,
        batch_size=config.storage.batch_write_size,
    )


def run_collect(args: argparse.Namespace, config: AppConfig, logger, run_id: str) -> int:
    _require(args, "facility")
    if args.facility == "all":
        facility_names = [facility.name for facility in config.active_facilities()]
    else:
        facility_names = [config.facility(args.facility).name]

    results: dict[str, dict] = {}
    failures: dict[str, str] = {}
    exit_code = EXIT_SUCCESS

    for name in facility_names:
        try:
            result = run_collection(name, config, correlation_id=f"{run_id}-{name}")
        except PipelineError as exc:
            failures[name] = exc.error_code
            log_event(
                logger,
                f"collection failed for facility {name}",
                run_id=run_id,
                facility=name,
                event="COLLECT_FAIL",
                status="error",
                error_code=exc.error_code,
            )
            if exc.error_code in HARD_FAIL_CODES or args.strict:
                exit_code = EXIT_HARD_FAIL
                break
            continue
        except Exception:
            failures[name] = "UNEXPECTED_ERROR"
            log_event(
                logger,
                f"unexpected failure for facility {name}",
                run_id=run_id,
                facility=name,
                event="COLLECT_FAIL",
                status="error",
                error_code="UNEXPECTED_ERROR",
            )
            if args.strict:
                exit_code = EXIT_HARD_FAIL
                break
            continue
        results[name] = result.to_dict()

    summary_path = write_run_summary(
        Path(args.data_dir),
        run_id=run_id,
        run_date=utc_today_iso(),
        results=results,
        failures=failures,
    )
    _emit({"run_id": run_id, "summary": str(summary_path), "results": results, "failed_facilities": failures})

    if exit_code != EXIT_SUCCESS:
        return exit_code
    if failures or any(result["truncated"] for result in results.values()):
        return EXIT_PARTIAL
    return EXIT_SUCCESS


def run_ingest(args: argparse.Namespace, config: AppConfig) -> int:
    _require(args, "message_files")
    messages = []
    for name in args.message_files:
        path = Path(name)
        messages.append((path.name, path.read_text(encoding="utf-8")))

    ingestor = BatchIngestor(_store(config), max_workers=config.ingest_max_workers)
    report = ingestor.ingest_many(messages)
    _emit({"counts": report.counts(), "failed": report.failed_message_ids})
    if report.failed or report.dropped:
        return EXIT_PARTIAL
    return EXIT_SUCCESS


def run_query(args: argparse.Namespace, config: AppConfig) -> int:
    store = _store(config)
    limit = args.limit

    if args.command == "recent":
        if args.facility:
            facility = config.facility(args.facility)
            _emit(store.query_facility_recent(facility.name, limit=limit or DEFAULT_QUERY_LIMIT))
        else:
            _emit(store.query_recent_global(limit=limit or DEFAULT_QUERY_LIMIT))
    elif args.command == "by-facility":
        _require(args, "facility")
        facility = config.facility(args.facility)
        _emit(
            store.query_by_facility(
                facility.name,
                start_date=args.start_date,
                end_date=args.end_date,
                limit=limit or DEFAULT_QUERY_LIMIT,
            )
        )
    elif args.command == "by-surname":
        _require(args, "facility", "surname")
        facility = config.facility(args.facility)
        _emit(store.query_by_surname_prefix(facility.name, args.surname, limit=limit or DEFAULT_SURNAME_LIMIT))
    elif args.command == "lookup":
        _require(args, "facility", "date")
        facility = config.facility(args.facility)
        _emit(
            store.get_by_identity(
                facility.name,
                args.last_name,
                args.first_name,
                args.middle_name,
                args.date,
            )
        )
    else:
        raise ValueError(f"Unknown query command: {args.command}")
    return EXIT_SUCCESS


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    data_dir = Path(args.data_dir)
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None

    logger = build_logger(run_id, data_dir=data_dir, level=args.log_level)
    config = load_app_config(
        Path(args.config_dir),
        overlay_config_dir=overlay_config_dir,
        parameter_store=ParameterStore() if args.use_parameter_store else None,
    )
    log_event(logger, "command start", run_id=run_id, event="COMMAND_START", status="ok")

    if args.command == "facilities":
        _emit(
            [
                {
                    "name": facility.name,
                    "display_name": facility.display_name,
                    "collectable": facility.is_collectable,
                }
                for facility in config.all_facilities()
            ]
        )
        return EXIT_SUCCESS
    if args.command == "collect":
        return run_collect(args, config, logger, run_id)
    if args.command == "ingest":
        return run_ingest(args, config)
    return run_query(args, config)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    try:
        return run_command(args)
    except PipelineError as exc:
        sys.stderr.write(f"{exc.error_code}: {exc}\n")
        return EXIT_HARD_FAIL
    except Exception as exc:
        sys.stderr.write(f"UNEXPECTED_ERROR: {exc}\n")
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
