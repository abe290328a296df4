"""CLI for backend connectivity verification.

Usage:
    python -m learnassist.diagnostics                     # basic check
    python -m learnassist.diagnostics --verbose           # include probe bodies
    python -m learnassist.diagnostics --json              # machine-readable report
    python -m learnassist.diagnostics --backend-url http://127.0.0.1:5001
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from learnassist.config import Settings
from learnassist.diagnostics.connectivity import ConnectivityReport, verify_connectivity

RULE = "-" * 80


def render(report: ConnectivityReport, verbose: bool = False) -> str:
    lines = [RULE, "BACKEND CONNECTIVITY VERIFICATION", RULE]
    lines.append(f"Backend URL: {report.backend_url}")
    if report.port_in_use is not None:
        state = "in use (backend listening)" if report.port_in_use else "free (nothing listening)"
        lines.append(f"Port {report.port}: {state}")
    for detail in report.details:
        lines.append(f"  {detail}")
    if report.database_connected is not None:
        lines.append(f"Database: {'connected' if report.database_connected else 'not connected'}")
    if verbose:
        for probe in (report.root_health, report.api_health):
            if probe is not None and probe.data is not None:
                lines.append(f"  {probe.url} -> {probe.data}")

    lines.append(RULE)
    if report.healthy and not report.issues:
        lines.append("All checks passed")
        return "\n".join(lines)

    if report.issues:
        lines.append("Issues:")
        lines.extend(f"  {n}. {issue}" for n, issue in enumerate(report.issues, 1))
    if report.solutions:
        lines.append("Solutions:")
        lines.extend(f"  {n}. {fix}" for n, fix in enumerate(report.solutions, 1))
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="learnassist-verify",
        description="Verify connectivity to the learning-assistant backend",
    )
    parser.add_argument("--backend-url", help="Override LEARNASSIST_BACKEND_URL")
    parser.add_argument("--timeout", type=float, help="Probe timeout in seconds")
    parser.add_argument("--no-port-check", action="store_true", help="Skip the local port check")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Detailed output")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    overrides = {}
    if args.backend_url:
        overrides["backend_url"] = args.backend_url
    if args.timeout:
        overrides["probe_timeout"] = args.timeout
    settings = Settings(**overrides)

    report = asyncio.run(verify_connectivity(settings, check_port=not args.no_port_check))

    if args.json:
        print(json.dumps(report.to_dict(), indent=2, default=str))
    else:
        print(render(report, verbose=args.verbose))
    return 0 if report.healthy else 1


if __name__ == "__main__":
    sys.exit(main())
