"""Command-line interface for azguard."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable

import yaml

from azguard import __version__
from azguard.auth.credentials import DeferredTokenSource, get_subscription_id_from_cli
from azguard.collectors.azure_cost_management import CostManagementCollector
from azguard.config.loader import (
    apply_overrides,
    get_setting,
    load_config,
    validate_subscription_id,
)
from azguard.config.schema import Config
from azguard.cost.periods import current_month_date_range
from azguard.cost.service import CostService
from azguard.exceptions import AzGuardError, TokenError
from azguard.output import OutputFormatter
from azguard.storage.models import CostFilter
from azguard.storage.sqlite import SQLiteStorage

logger = logging.getLogger(__name__)

_SECRET_SETTINGS = (
    ("azure", "client_secret"),
)


@dataclass
class CommandContext:
    """Objects shared by every command handler for one invocation."""

    config: Config
    storage: SQLiteStorage
    formatter: OutputFormatter

    def service(self, network: bool = False) -> CostService:
        """
        Build the cost service.

        Args:
            network: Whether the command will call Azure. Only then is the
                    subscription resolved from the Azure CLI and validated.
        """
        azure = self.config.azure
        subscription_id = azure.subscription_id

        if network:
            if not subscription_id and azure.auth_method == "cli":
                try:
                    subscription_id = get_subscription_id_from_cli()
                except TokenError as e:
                    logger.warning("Could not read default subscription from Azure CLI: %s", e)
            if subscription_id:
                validate_subscription_id(subscription_id)

        timeout = self.config.http.timeout_seconds
        collector = CostManagementCollector(
            subscription_id=subscription_id,
            token_source=DeferredTokenSource(azure.auth_method, azure, timeout),
            timeout=timeout,
            base_url=azure.management_url,
            api_version=azure.api_version,
        )
        return CostService(self.storage, collector, self.config)


def _iso_date(value: str) -> str:
    try:
        return date.fromisoformat(value).isoformat()
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date '{value}' (expected YYYY-MM-DD)")


def _month_filter(args: argparse.Namespace) -> CostFilter:
    """Filter from --start/--end/--service, defaulting to the current month."""
    start_date, end_date = current_month_date_range()
    last_day = (date.fromisoformat(end_date) - timedelta(days=1)).isoformat()
    return CostFilter(
        start_date=args.start or start_date,
        end_date=args.end or last_day,
        service_name=getattr(args, "service", None),
    )


# =============================================================================
# config
# =============================================================================


def cmd_config_get(args: argparse.Namespace, ctx: CommandContext) -> int:
    value = ctx.storage.get_config(args.key)
    if value is None:
        value = get_setting(ctx.config, args.key)
    print("" if value is None else value)
    return 0


def cmd_config_set(args: argparse.Namespace, ctx: CommandContext) -> int:
    # Reject values that would make every later run fail to load
    apply_overrides(ctx.config, {args.key: args.value})
    ctx.storage.set_config(args.key, args.value)
    print(f"Set {args.key}")
    return 0


def cmd_config_list(args: argparse.Namespace, ctx: CommandContext) -> int:
    data = ctx.config.model_dump()
    for section, key in _SECRET_SETTINGS:
        if data[section].get(key):
            data[section][key] = "********"
    print(yaml.safe_dump(data, sort_keys=False).rstrip())

    overrides = ctx.storage.list_config()
    if overrides:
        print("\n# stored overrides")
        for key, value in overrides.items():
            print(f"# {key} = {value}")
    return 0


# =============================================================================
# cost
# =============================================================================


def cmd_cost_current(args: argparse.Namespace, ctx: CommandContext) -> int:
    summary = ctx.service(network=True).get_current_costs()
    print(ctx.formatter.format_summary(summary))
    return 0


def cmd_cost_history(args: argparse.Namespace, ctx: CommandContext) -> int:
    summary = ctx.service().get_cost_history(args.days)
    print(ctx.formatter.format_summary(summary))
    return 0


def cmd_cost_fetch(args: argparse.Namespace, ctx: CommandContext) -> int:
    start_date, end_date = current_month_date_range()
    stored = ctx.service(network=True).fetch_and_store_costs(
        args.start or start_date, args.end or end_date
    )
    print(f"Costs fetched and stored successfully ({stored} records)")
    return 0


def cmd_cost_summary(args: argparse.Namespace, ctx: CommandContext) -> int:
    summary = ctx.service().get_cost_summary(_month_filter(args))
    print(ctx.formatter.format_summary(summary))
    return 0


def cmd_cost_records(args: argparse.Namespace, ctx: CommandContext) -> int:
    records = ctx.storage.get_records(
        CostFilter(start_date=args.start, end_date=args.end, service_name=args.service)
    )
    print(ctx.formatter.format_records(records))
    return 0


def cmd_cost_forecast(args: argparse.Namespace, ctx: CommandContext) -> int:
    forecast = ctx.service(network=True).get_forecast()
    print(ctx.formatter.format_forecast(forecast))
    return 0


def cmd_cost_trend(args: argparse.Namespace, ctx: CommandContext) -> int:
    trend = ctx.service().get_trend_analysis()
    print(ctx.formatter.format_trend(trend))
    return 0


def cmd_cost_report(args: argparse.Namespace, ctx: CommandContext) -> int:
    report = ctx.service(network=True).generate_report()
    print(ctx.formatter.format_report(report))
    return 0


# =============================================================================
# cost alert
# =============================================================================


def cmd_alert_list(args: argparse.Namespace, ctx: CommandContext) -> int:
    print(ctx.formatter.format_alerts(ctx.storage.get_alerts()))
    return 0


def cmd_alert_add(args: argparse.Namespace, ctx: CommandContext) -> int:
    alert = ctx.service().create_alert(args.name, args.threshold)
    print(f"Alert '{alert.name}' created with threshold ${alert.threshold:.2f}")
    return 0


def cmd_alert_delete(args: argparse.Namespace, ctx: CommandContext) -> int:
    ctx.storage.delete_alert(args.name)
    print(f"Alert '{args.name}' deleted")
    return 0


def _set_enabled(enabled: bool) -> Callable[[argparse.Namespace, CommandContext], int]:
    def handler(args: argparse.Namespace, ctx: CommandContext) -> int:
        updated = ctx.storage.set_alert_enabled(args.name, enabled)
        if not updated:
            print(f"No alert named '{args.name}'", file=sys.stderr)
            return 1
        print(f"Alert '{args.name}' {'enabled' if enabled else 'disabled'}")
        return 0

    return handler


def cmd_alert_check(args: argparse.Namespace, ctx: CommandContext) -> int:
    service = ctx.service()
    summary, results = service.check_alerts()
    print(ctx.formatter.format_alert_status(summary, results))
    if args.fail_on_trigger and service.alert_evaluator.any_triggered(results):
        return 2
    return 0


# =============================================================================
# cloud
# =============================================================================


def cmd_cloud_list(args: argparse.Namespace, ctx: CommandContext) -> int:
    azure = ctx.config.azure
    providers = [
        {
            "provider": "Azure",
            "configured": bool(azure.subscription_id),
            "account": azure.subscription_id,
            "auth_method": azure.auth_method,
        }
    ]
    print(ctx.formatter.format_providers(providers))
    return 0


# =============================================================================
# Parser
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="azguard",
        description="Track Azure cloud costs from the command line.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-o",
        "--output",
        choices=["table", "json", "csv"],
        default="table",
        help="Output format (default: table)",
    )
    parser.add_argument("--config-dir", help="Config directory (default: ~/.azguard)")
    parser.add_argument("--profile", help="Config profile to merge (config.<profile>.yaml)")
    parser.add_argument("--db", help="Database path (overrides storage.path)")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-vv for debug)")

    commands = parser.add_subparsers(dest="command", required=True)

    # config
    config_parser = commands.add_parser("config", help="Manage configuration")
    config_commands = config_parser.add_subparsers(dest="config_command", required=True)

    get_parser = config_commands.add_parser("get", help="Get a config value")
    get_parser.add_argument("key")
    get_parser.set_defaults(handler=cmd_config_get)

    set_parser = config_commands.add_parser("set", help="Set a config value")
    set_parser.add_argument("key")
    set_parser.add_argument("value")
    set_parser.set_defaults(handler=cmd_config_set)

    config_commands.add_parser("list", help="Show the effective configuration").set_defaults(
        handler=cmd_config_list
    )

    # cloud
    cloud_parser = commands.add_parser("cloud", help="Manage cloud providers")
    cloud_commands = cloud_parser.add_subparsers(dest="cloud_command", required=True)
    cloud_commands.add_parser("list", help="List configured cloud providers").set_defaults(
        handler=cmd_cloud_list
    )

    # cost
    cost_parser = commands.add_parser("cost", help="Manage cloud costs")
    cost_commands = cost_parser.add_subparsers(dest="cost_command", required=True)

    cost_commands.add_parser("current", help="Fetch and show current month costs").set_defaults(
        handler=cmd_cost_current
    )

    history_parser = cost_commands.add_parser("history", help="Show stored cost history")
    history_parser.add_argument("--days", type=int, help="Days to look back (default: 30)")
    history_parser.set_defaults(handler=cmd_cost_history)

    fetch_parser = cost_commands.add_parser("fetch", help="Fetch and store costs from Azure")
    fetch_parser.add_argument("--start", type=_iso_date, help="Start date (default: first of month)")
    fetch_parser.add_argument("--end", type=_iso_date, help="End date (default: first of next month)")
    fetch_parser.set_defaults(handler=cmd_cost_fetch)

    summary_parser = cost_commands.add_parser("summary", help="Show cost summary from local storage")
    summary_parser.add_argument("--start", type=_iso_date, help="Start date (default: first of month)")
    summary_parser.add_argument("--end", type=_iso_date, help="End date (default: end of month)")
    summary_parser.add_argument("--service", help="Only include this service")
    summary_parser.set_defaults(handler=cmd_cost_summary)

    records_parser = cost_commands.add_parser("records", help="List stored cost records")
    records_parser.add_argument("--start", type=_iso_date)
    records_parser.add_argument("--end", type=_iso_date)
    records_parser.add_argument("--service")
    records_parser.set_defaults(handler=cmd_cost_records)

    cost_commands.add_parser("forecast", help="Show cost forecast").set_defaults(
        handler=cmd_cost_forecast
    )
    cost_commands.add_parser("trend", help="Show cost trend analysis").set_defaults(
        handler=cmd_cost_trend
    )
    cost_commands.add_parser("report", help="Generate cost report").set_defaults(
        handler=cmd_cost_report
    )

    # cost alert
    alert_parser = cost_commands.add_parser("alert", help="Manage budget alerts")
    alert_commands = alert_parser.add_subparsers(dest="alert_command", required=True)

    alert_commands.add_parser("list", help="List all alerts").set_defaults(handler=cmd_alert_list)

    add_parser = alert_commands.add_parser("add", help="Add a new budget alert")
    add_parser.add_argument("name")
    add_parser.add_argument("threshold", type=float)
    add_parser.set_defaults(handler=cmd_alert_add)

    for name, handler, help_text in (
        ("delete", cmd_alert_delete, "Delete an alert"),
        ("enable", _set_enabled(True), "Enable an alert"),
        ("disable", _set_enabled(False), "Disable an alert"),
    ):
        sub = alert_commands.add_parser(name, help=help_text)
        sub.add_argument("name")
        sub.set_defaults(handler=handler)

    check_parser = alert_commands.add_parser("check", help="Check current costs against alerts")
    check_parser.add_argument(
        "--fail-on-trigger",
        action="store_true",
        help="Exit with status 2 when any alert is triggered",
    )
    check_parser.set_defaults(handler=cmd_alert_check)

    return parser


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    try:
        config = load_config(args.config_dir, args.profile)
        db_path = args.db or config.storage.path

        with SQLiteStorage(db_path) as storage:
            config = apply_overrides(config, storage.list_config())
            ctx = CommandContext(
                config=config,
                storage=storage,
                formatter=OutputFormatter(args.output),
            )
            return args.handler(args, ctx)

    except AzGuardError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
