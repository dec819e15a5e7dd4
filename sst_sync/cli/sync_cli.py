"""
Command-line interface for adherence synchronization and route lifecycle.

Usage:
    sst-sync check-config
    sst-sync pull [--json]
    sst-sync stats
    sst-sync serve [--interval <seconds>] [--metrics-port <port>]
    sst-sync sync-log [--limit <n>]
    sst-sync route create --date <YYYY-MM-DD> --time <HH:MM> --sector <name> ...
    sst-sync route confirm --id <route_id> --responsible <name> [--all-present SIM|NÃO]
    sst-sync route complete --id <route_id> [--notes <text>]
    sst-sync route cancel --id <route_id> --notes <text>
    sst-sync route show --id <route_id>
    sst-sync route list [--status <status>]
    sst-sync route retry-publishes [--list]
"""

import argparse
import asyncio
import json
import os
import sys

from dotenv import find_dotenv, load_dotenv
from pydantic import ValidationError

from sst_sync.app import SyncApplication, build_application
from sst_sync.config import SharePointSettings
from sst_sync.core.errors import ConfigurationError, SyncError
from sst_sync.core.models import Route, RouteStatus
from sst_sync.observability import metrics
from sst_sync.observability.logger import get_logger
from sst_sync.routes import LoggingNotificationDispatcher, RouteStateMachine
from sst_sync.storage.connection import DatabaseConnectionPool
from sst_sync.storage.publish_worklist_store import PostgresPublishWorklist
from sst_sync.storage.route_store import PostgresRouteRepository
from sst_sync.storage.sync_log_store import PostgresSyncLog

logger = get_logger(__name__)

EXIT_CONFIG_ERROR = 2


def load_settings() -> SharePointSettings:
    try:
        return SharePointSettings.from_env()
    except ConfigurationError as e:
        logger.error(str(e), extra={"missing": e.missing})
        sys.exit(EXIT_CONFIG_ERROR)


def open_pool(args) -> DatabaseConnectionPool:
    try:
        pool = DatabaseConnectionPool(
            host=args.db_host,
            port=args.db_port,
            database=args.db_name,
            user=args.db_user,
            password=args.db_password,
        )
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(EXIT_CONFIG_ERROR)
    pool.open()
    return pool


def print_json(payload) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def check_config_command(args):
    settings = load_settings()

    async def run() -> bool:
        async with build_application(settings) as app:
            return await app.orchestrator.validate_configuration()

    if asyncio.run(run()):
        logger.info("SharePoint configuration is valid")
    else:
        logger.error("SharePoint configuration check failed")
        sys.exit(1)


def pull_command(args):
    settings = load_settings()

    async def run(app: SyncApplication):
        async with app:
            records = await app.orchestrator.pull_all()
            return records, app.orchestrator.snapshot.statistics()

    records, stats = asyncio.run(run(build_application(settings)))
    if args.json:
        print_json([r.model_dump(mode="json") for r in records])
    else:
        logger.info(f"Pulled {len(records)} adherence records")
        logger.info(f"Completed: {stats.completed_routes}  Pending: {stats.pending_routes}")


def stats_command(args):
    settings = load_settings()

    async def run():
        async with build_application(settings) as app:
            await app.orchestrator.pull_all()
            return app.orchestrator.snapshot.statistics()

    print_json(asyncio.run(run()).model_dump())


def serve_command(args):
    settings = load_settings()
    sync_log = None
    pool = None
    if args.persist_log:
        pool = open_pool(args)
        sync_log = PostgresSyncLog(pool)
        sync_log.ensure_schema()

    if args.metrics_port:
        metrics.start_metrics_server(args.metrics_port)

    async def run():
        async with build_application(settings, sync_log=sync_log) as app:
            await app.orchestrator.run_periodic(interval=args.interval)

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("Periodic sync stopped")
    finally:
        if pool is not None:
            pool.close()


def sync_log_command(args):
    pool = open_pool(args)
    try:
        sync_log = PostgresSyncLog(pool)
        print_json([e.model_dump(mode="json") for e in sync_log.recent(args.limit)])
    finally:
        pool.close()


def route_command(args):
    pool = open_pool(args)
    repository = PostgresRouteRepository(pool)
    repository.ensure_schema()
    worklist = PostgresPublishWorklist(pool)
    worklist.ensure_schema()

    try:
        if args.route_action == "show":
            print_json(repository.get(args.id).model_dump(mode="json"))
            return
        if args.route_action == "list":
            print_json([r.model_dump(mode="json") for r in repository.list(args.status)])
            return
        if args.route_action == "retry-publishes" and args.list:
            print_json([item.model_dump(mode="json") for item in worklist.pending()])
            return

        settings = load_settings()
        recipients = [c.strip() for c in os.getenv("ROUTE_NOTIFY_RECIPIENTS", "").split(",") if c.strip()]

        async def run():
            async with build_application(settings) as app:
                machine = RouteStateMachine(
                    repository,
                    app.publisher,
                    notifier=LoggingNotificationDispatcher(),
                    recipients=recipients,
                    worklist=worklist,
                )
                return await _apply_route_action(machine, args)

        result = asyncio.run(run())
        print_json(result)
        if args.route_action == "retry-publishes" and result["failed"]:
            sys.exit(1)
    except SyncError as e:
        logger.error(str(e), extra={"error": e.to_dict()})
        sys.exit(1)
    except ValidationError as e:
        logger.error(f"Invalid route: {e}")
        sys.exit(1)
    finally:
        pool.close()


async def _apply_route_action(machine: RouteStateMachine, args) -> dict:
    if args.route_action == "create":
        route = await machine.create(Route(
            route_date=args.date,
            route_time=args.time,
            sector=args.sector,
            safety_technician=args.technician,
            maintenance_representative=args.maintenance,
            production_representative=args.production,
            guests=args.guests,
            notes=args.notes,
        ))
        return route.model_dump(mode="json")

    if args.route_action == "confirm":
        outcome = await machine.confirm(
            args.id,
            responsible_party=args.responsible,
            notes=args.notes,
            all_present=args.all_present,
            actual_date=args.actual_date,
        )
        return {
            "route": outcome.route.model_dump(mode="json"),
            "published": outcome.published,
            "remote_row_id": outcome.publish.value,
            "publish_error": outcome.publish.error.to_dict() if outcome.publish.error else None,
        }

    if args.route_action == "retry-publishes":
        return await machine.worklist.retry_all(machine.publisher)

    if args.route_action == "complete":
        return (await machine.complete(args.id, args.notes)).model_dump(mode="json")

    return (await machine.cancel(args.id, args.notes)).model_dump(mode="json")


def add_db_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--db-host", default=None, help="Database host (default: $DB_HOST)")
    parser.add_argument("--db-port", type=int, default=None, help="Database port (default: $DB_PORT)")
    parser.add_argument("--db-name", default=None, help="Database name (default: $DB_NAME)")
    parser.add_argument("--db-user", default=None, help="Database user (default: $DB_USER)")
    parser.add_argument("--db-password", default=None, help="Database password (default: $DB_PASSWORD)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Safety-inspection route tracking and SharePoint adherence sync",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Verify credentials and that the Aderência table can be found
  sst-sync check-config

  # Pull the adherence table once and print it
  sst-sync pull --json

  # Keep the snapshot fresh every 5 minutes, logging outcomes to PostgreSQL
  sst-sync serve --persist-log --metrics-port 9100

  # Confirm route 12 with everyone present
  sst-sync route confirm --id 12 --responsible "Ana Lima" --all-present SIM

  # Republish rows whose confirmation could not reach SharePoint
  sst-sync route retry-publishes
        """
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("check-config", help="Validate token and remote table resolution")

    pull_parser = subparsers.add_parser("pull", help="Pull the adherence table once")
    pull_parser.add_argument("--json", action="store_true", help="Print records as JSON")

    subparsers.add_parser("stats", help="Pull and print adherence statistics")

    serve_parser = subparsers.add_parser("serve", help="Pull periodically until interrupted")
    serve_parser.add_argument("--interval", type=float, default=None,
                              help="Seconds between pulls (default: $SYNC_INTERVAL_SECONDS or 300)")
    serve_parser.add_argument("--metrics-port", type=int, default=None,
                              help="Expose Prometheus metrics on this port")
    serve_parser.add_argument("--persist-log", action="store_true",
                              help="Record pull outcomes in the sync_logs table")
    add_db_arguments(serve_parser)

    log_parser = subparsers.add_parser("sync-log", help="Show recent pull outcomes")
    log_parser.add_argument("--limit", type=int, default=20)
    add_db_arguments(log_parser)

    route_parser = subparsers.add_parser("route", help="Route lifecycle operations")
    route_actions = route_parser.add_subparsers(dest="route_action", required=True)

    create = route_actions.add_parser("create", help="Schedule a new route")
    create.add_argument("--date", required=True, help="Route date (YYYY-MM-DD)")
    create.add_argument("--time", required=True, help="Route time (HH:MM)")
    create.add_argument("--sector", required=True)
    create.add_argument("--technician", required=True, help="Safety technician")
    create.add_argument("--maintenance", required=True, help="Maintenance representative")
    create.add_argument("--production", required=True, help="Production representative")
    create.add_argument("--guests", default=None, help="Comma separated guest list")
    create.add_argument("--notes", default=None)

    confirm = route_actions.add_parser("confirm", help="Confirm a pending route and publish it")
    confirm.add_argument("--id", type=int, required=True)
    confirm.add_argument("--responsible", required=True)
    confirm.add_argument("--notes", default=None)
    confirm.add_argument("--all-present", default="NÃO", help="SIM or NÃO (default: NÃO)")
    confirm.add_argument("--actual-date", default=None, help="Date performed (default: today)")

    complete = route_actions.add_parser("complete", help="Complete a confirmed route")
    complete.add_argument("--id", type=int, required=True)
    complete.add_argument("--notes", default=None)

    cancel = route_actions.add_parser("cancel", help="Cancel a pending or confirmed route")
    cancel.add_argument("--id", type=int, required=True)
    cancel.add_argument("--notes", required=True)

    show = route_actions.add_parser("show", help="Show one route")
    show.add_argument("--id", type=int, required=True)

    listing = route_actions.add_parser("list", help="List routes")
    listing.add_argument("--status", choices=[s.value for s in RouteStatus], default=None)

    retry = route_actions.add_parser("retry-publishes", help="Publish rows whose publish failed at confirmation")
    retry.add_argument("--list", action="store_true", help="Only list the queued rows")

    for action in (create, confirm, complete, cancel, show, listing, retry):
        add_db_arguments(action)

    return parser


COMMANDS = {
    "check-config": check_config_command,
    "pull": pull_command,
    "stats": stats_command,
    "serve": serve_command,
    "sync-log": sync_log_command,
    "route": route_command,
}


def main(argv=None):
    """Main CLI entry point."""
    load_dotenv(find_dotenv(usecwd=True))
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    COMMANDS[args.command](args)


if __name__ == "__main__":
    main()
