"""
Standalone audit worker, run as a child process by SubprocessAuditRunner.

    python -m prospectflow.audit_worker <url> [--screenshots]

Writes exactly one JSON document to stdout: the AuditResult, or
``{"error": "..."}``. Logs go to stderr. Exit code 0 on success, 1 on error.
"""

import argparse
import asyncio
import json
import logging
import sys

from prospectflow.config import settings
from prospectflow.services.site_audit import audit_website

logger = logging.getLogger("prospectflow.audit_worker")


def _write(payload: dict) -> None:
    sys.stdout.write(json.dumps(payload, ensure_ascii=False))
    sys.stdout.flush()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="prospectflow-audit", description="Audit one website")
    parser.add_argument("url", nargs="?")
    parser.add_argument("--screenshots", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        stream=sys.stderr,
    )

    if not args.url:
        _write({"error": "Missing URL"})
        return 1

    try:
        result = asyncio.run(
            audit_website(
                args.url,
                screenshots=args.screenshots,
                timeout_ms=settings.audit_worker_nav_timeout_ms,
            )
        )
    except Exception as e:
        logger.exception("Audit failed for %s", args.url)
        _write({"error": str(e) or e.__class__.__name__})
        return 1

    _write(result.model_dump(mode="json"))
    return 0


if __name__ == "__main__":
    sys.exit(main())
