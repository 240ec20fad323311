"""
Audit runners — where a site audit actually executes.

``SubprocessAuditRunner`` isolates each audit in its own Python process with a
hard wall-clock limit, so a page that hangs or crashes the browser cannot take
down the service. ``InProcessAuditRunner`` calls the engine directly and is
used for fixtures and tests.
"""

import asyncio
import contextlib
import json
import logging
import sys
from typing import Awaitable, Callable, Protocol

from pydantic import ValidationError

from prospectflow.config import settings
from prospectflow.schemas import AuditResult
from prospectflow.services.site_audit import audit_website

logger = logging.getLogger("prospectflow.audit_runner")

WORKER_MODULE = "prospectflow.audit_worker"


class AuditWorkerError(RuntimeError):
    """Audit subprocess failure. ``kind`` tells the failure modes apart."""

    TIMEOUT = "timeout"
    NO_OUTPUT = "no_output"
    WORKER_ERROR = "worker_error"
    INVALID_OUTPUT = "invalid_output"
    SPAWN_FAILED = "spawn_failed"

    def __init__(self, kind: str, message: str):
        super().__init__(message)
        self.kind = kind


class AuditRunner(Protocol):
    async def run(self, url: str, screenshots: bool = False) -> AuditResult: ...


class InProcessAuditRunner:
    def __init__(self, audit_fn: Callable[..., Awaitable[AuditResult]] = audit_website):
        self._audit_fn = audit_fn

    async def run(self, url: str, screenshots: bool = False) -> AuditResult:
        return await self._audit_fn(url, screenshots=screenshots)


class SubprocessAuditRunner:
    """Runs ``python -m prospectflow.audit_worker <url> [--screenshots]``."""

    def __init__(self, timeout: float | None = None, python: str | None = None):
        self.timeout = timeout or settings.audit_worker_timeout
        self.python = python or sys.executable

    async def run(self, url: str, screenshots: bool = False) -> AuditResult:
        args = [self.python, "-m", WORKER_MODULE, url]
        if screenshots:
            args.append("--screenshots")

        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise AuditWorkerError(AuditWorkerError.SPAWN_FAILED, f"Could not start audit worker: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()
            logger.warning("Audit worker timed out after %.0fs for %s", self.timeout, url)
            raise AuditWorkerError(
                AuditWorkerError.TIMEOUT, f"Audit timed out after {self.timeout:.0f}s"
            )

        return self._parse_output(
            stdout.decode("utf-8", errors="replace").strip(),
            stderr.decode("utf-8", errors="replace"),
            proc.returncode,
        )

    @staticmethod
    def _parse_output(stdout: str, stderr: str, returncode: int | None) -> AuditResult:
        if not stdout:
            raise AuditWorkerError(
                AuditWorkerError.NO_OUTPUT,
                f"Audit worker produced no output (exit code {returncode}). Stderr: {stderr[:300]}",
            )

        try:
            payload = json.loads(stdout)
        except json.JSONDecodeError:
            raise AuditWorkerError(
                AuditWorkerError.INVALID_OUTPUT, f"Invalid JSON from audit worker: {stdout[:200]}"
            )

        if isinstance(payload, dict) and "error" in payload:
            raise AuditWorkerError(AuditWorkerError.WORKER_ERROR, str(payload["error"]))

        try:
            return AuditResult.model_validate(payload)
        except ValidationError as e:
            raise AuditWorkerError(
                AuditWorkerError.INVALID_OUTPUT, f"Unexpected audit payload: {e.error_count()} invalid fields"
            )


def get_audit_runner() -> AuditRunner:
    """FastAPI dependency — production runner."""
    return SubprocessAuditRunner()
