"""
waf-temp-access: temporary ingress for a CI runner's public IP.

Commands:
  grant   resolve the public IP, add it to the configured WAF IPSet and/or security group,
          save the grant record to STATE_FILE (pre step)
  revoke  read STATE_FILE, remove exactly what grant added, delete STATE_FILE (post step);
          always exits 0
  run     grant -> run the given command -> revoke (in finally); exits with the command's status

Inputs come from the environment (see waf_temp_access.config.loader.Settings), e.g.:
  IPSET_ID=... IPSET_NAME=... IPSET_SCOPE=REGIONAL AWS_REGION=eu-west-1 \
    python -m tools.access_cli run -- ./integration-tests.sh

Exit codes: 0 ok, 1 grant failed, 2 configuration error, otherwise the wrapped command's.
"""

from __future__ import annotations

import argparse
import subprocess
import sys
import time
from functools import partial
from typing import Callable, List, Optional, Sequence

from waf_temp_access.access import (
    AccessGrantError,
    GrantRecord,
    clear_state,
    load_state,
    make_coordinator,
    save_state,
)
from waf_temp_access.config import ConfigError, Settings, validate_settings
from waf_temp_access.logging import get_logger, log, new_trace_id, warn
from waf_temp_access.net import ResolverError, resolve_public_ip
from waf_temp_access.telemetry import Metrics

EXIT_OK = 0
EXIT_GRANT_FAILED = 1
EXIT_CONFIG = 2

logger = get_logger("access_cli")


def write_github_output(path: str, **outputs: str) -> None:
    """Append key=value lines to the $GITHUB_OUTPUT file (no-op when unset)."""
    if not path:
        return
    with open(path, "a", encoding="utf-8") as f:
        for k, v in outputs.items():
            f.write(f"{k}={v}\n")


def _flush_metrics(settings: Settings, metrics: Optional[Metrics]) -> None:
    if metrics is None or not settings.metrics_textfile:
        return
    try:
        metrics.write_textfile(settings.metrics_textfile)
    except OSError as e:
        warn(logger, "Failed to write metrics textfile", path=settings.metrics_textfile, error=str(e))


# -----------------------------
# Phases
# -----------------------------

def do_grant(settings: Settings, coordinator, *, address: Optional[str], metrics: Optional[Metrics]) -> Optional[GrantRecord]:
    """Run the grant phase. Returns the record, or None if the grant failed (already logged)."""
    try:
        record = coordinator.grant(address)
    except (ResolverError, ValueError) as e:
        logger.error("Action failed: %s", e)
        write_github_output(settings.github_output, status="failure")
        if metrics is not None:
            metrics.last_run_success.labels(metrics.service, "grant").set(0)
        return None
    except AccessGrantError as e:
        logger.error("Action failed: %s", e, extra={"extra": {"kind": e.kind.value, "attempts": e.attempts}})
        write_github_output(settings.github_output, status="failure")
        if metrics is not None:
            metrics.last_run_success.labels(metrics.service, "grant").set(0)
        return None

    write_github_output(settings.github_output, **{"ip-address": record.address, "status": "success"})
    if metrics is not None:
        metrics.last_run_success.labels(metrics.service, "grant").set(1)
    return record


def do_revoke(settings: Settings, coordinator, record: Optional[GrantRecord], *, metrics: Optional[Metrics]) -> None:
    results = coordinator.revoke(record)
    if metrics is not None:
        metrics.last_run_success.labels(metrics.service, "revoke").set(1 if all(r.ok for r in results) else 0)


# -----------------------------
# CLI
# -----------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="waf-temp-access")
    parser.add_argument("--state-file", default=None, help="grant record location (overrides STATE_FILE)")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_grant = sub.add_parser("grant", help="add this runner's public IP and save the grant record")
    p_grant.add_argument("--ip", default=None, help="use this address instead of looking it up")

    sub.add_parser("revoke", help="remove what the saved grant record holds (never fails)")

    p_run = sub.add_parser("run", help="grant, run a command, then revoke")
    p_run.add_argument("--ip", default=None, help="use this address instead of looking it up")
    p_run.add_argument("command", nargs=argparse.REMAINDER, help="command to run (after --)")
    return parser


def main(
    argv: Optional[Sequence[str]] = None,
    *,
    settings: Optional[Settings] = None,
    coordinator_factory: Optional[Callable[..., object]] = None,
    metrics: Optional[Metrics] = None,
) -> int:
    args = build_parser().parse_args(argv)
    settings = settings or Settings()
    state_file = args.state_file or settings.state_file
    trace_id = new_trace_id(args.cmd)
    factory = coordinator_factory or make_coordinator
    if metrics is None and settings.metrics_textfile:
        metrics = Metrics(settings.service_name)
    resolver = partial(resolve_public_ip, timeout=settings.ip_lookup_timeout_seconds)

    if args.cmd == "revoke":
        try:
            record = load_state(state_file)
        except ValueError as e:
            warn(logger, "Cleanup failed: unreadable state", error=str(e), trace_id=trace_id)
            return EXIT_OK
        try:
            coordinator = factory(settings, record=record, metrics=metrics, trace_id=trace_id)
        except Exception as e:
            # state file is kept so the grant can still be found and removed by hand
            warn(
                logger,
                "Cleanup failed. Manual cleanup may be required.",
                state_file=state_file,
                error=f"{type(e).__name__}: {e}",
                trace_id=trace_id,
            )
            return EXIT_OK
        do_revoke(settings, coordinator, record, metrics=metrics)
        clear_state(state_file)
        _flush_metrics(settings, metrics)
        return EXIT_OK

    try:
        validate_settings(settings)
    except ConfigError as e:
        logger.error("Action failed: %s", e)
        return EXIT_CONFIG

    try:
        coordinator = factory(settings, resolver=resolver, metrics=metrics, trace_id=trace_id)
    except Exception as e:
        logger.error("Action failed: could not set up AWS clients: %s: %s", type(e).__name__, e)
        write_github_output(settings.github_output, status="failure")
        return EXIT_CONFIG

    if args.cmd == "grant":
        record = do_grant(settings, coordinator, address=args.ip, metrics=metrics)
        _flush_metrics(settings, metrics)
        if record is None:
            return EXIT_GRANT_FAILED
        if record.is_empty():
            log(logger, "Nothing was added by this run, no cleanup state saved", trace_id=trace_id)
        else:
            save_state(state_file, record)
        return EXIT_OK

    # run
    command: List[str] = list(args.command)
    if command and command[0] == "--":
        command = command[1:]
    if not command:
        logger.error("run: no command given")
        return EXIT_CONFIG

    record = do_grant(settings, coordinator, address=args.ip, metrics=metrics)
    if record is None:
        _flush_metrics(settings, metrics)
        return EXIT_GRANT_FAILED
    started = time.time()
    try:
        log(logger, "Running command", command=" ".join(command), trace_id=trace_id)
        rc = subprocess.call(command)
    except OSError as e:
        logger.error("Failed to start command: %s", e)
        rc = 127
    finally:
        log(logger, "Command finished", seconds=round(time.time() - started, 3), trace_id=trace_id)
        do_revoke(settings, coordinator, record, metrics=metrics)
        _flush_metrics(settings, metrics)
    return rc


if __name__ == "__main__":
    sys.exit(main())
