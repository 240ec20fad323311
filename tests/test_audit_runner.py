"""
Tests for audit runners and the standalone audit worker.
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from prospectflow.schemas import AuditResult
from prospectflow.services.audit_runner import (
    AuditWorkerError,
    InProcessAuditRunner,
    SubprocessAuditRunner,
)

SAMPLE_AUDIT = AuditResult(
    url="https://bellemeche.fr",
    scanned_at="2024-05-01T10:00:00+00:00",
    mobile_score=100,
    seo_score=85,
    performance_score=85,
    load_time_sec=1.2,
    has_ssl=True,
    is_responsive=True,
)


def _fake_proc(stdout: bytes = b"", stderr: bytes = b"", returncode: int = 0):
    proc = MagicMock()
    proc.communicate = AsyncMock(return_value=(stdout, stderr))
    proc.wait = AsyncMock(return_value=returncode)
    proc.returncode = returncode
    return proc


class TestSubprocessAuditRunner:
    async def test_success(self):
        payload = json.dumps(SAMPLE_AUDIT.model_dump(mode="json")).encode()
        proc = _fake_proc(stdout=payload)

        with patch("asyncio.create_subprocess_exec", new_callable=AsyncMock, return_value=proc) as mock_exec:
            result = await SubprocessAuditRunner(timeout=5, python="python3").run(
                "https://bellemeche.fr", screenshots=True
            )

        assert result == SAMPLE_AUDIT
        args = mock_exec.call_args[0]
        assert args == (
            "python3", "-m", "prospectflow.audit_worker", "https://bellemeche.fr", "--screenshots",
        )

    async def test_no_screenshot_flag_by_default(self):
        payload = json.dumps(SAMPLE_AUDIT.model_dump(mode="json")).encode()
        with patch(
            "asyncio.create_subprocess_exec", new_callable=AsyncMock, return_value=_fake_proc(stdout=payload)
        ) as mock_exec:
            await SubprocessAuditRunner(timeout=5).run("https://bellemeche.fr")
        assert "--screenshots" not in mock_exec.call_args[0]

    async def test_timeout_kills_worker(self):
        proc = _fake_proc()

        async def hang():
            await asyncio.sleep(10)

        proc.communicate = hang

        with patch("asyncio.create_subprocess_exec", new_callable=AsyncMock, return_value=proc):
            with pytest.raises(AuditWorkerError) as exc_info:
                await SubprocessAuditRunner(timeout=0.05).run("https://slow.example.fr")

        assert exc_info.value.kind == AuditWorkerError.TIMEOUT
        assert "timed out" in str(exc_info.value)
        proc.kill.assert_called_once()
        proc.wait.assert_awaited_once()

    async def test_timeout_when_worker_already_exited(self):
        proc = _fake_proc()

        async def hang():
            await asyncio.sleep(10)

        proc.communicate = hang
        proc.kill.side_effect = ProcessLookupError()

        with patch("asyncio.create_subprocess_exec", new_callable=AsyncMock, return_value=proc):
            with pytest.raises(AuditWorkerError) as exc_info:
                await SubprocessAuditRunner(timeout=0.05).run("https://slow.example.fr")

        assert exc_info.value.kind == AuditWorkerError.TIMEOUT
        proc.wait.assert_awaited_once()

    async def test_no_output(self):
        proc = _fake_proc(stdout=b"  \n", stderr=b"Segmentation fault", returncode=139)
        with patch("asyncio.create_subprocess_exec", new_callable=AsyncMock, return_value=proc):
            with pytest.raises(AuditWorkerError) as exc_info:
                await SubprocessAuditRunner(timeout=5).run("https://a.fr")

        assert exc_info.value.kind == AuditWorkerError.NO_OUTPUT
        assert "exit code 139" in str(exc_info.value)
        assert "Segmentation fault" in str(exc_info.value)

    async def test_worker_reported_error(self):
        proc = _fake_proc(stdout=b'{"error": "Executable doesn\'t exist"}', returncode=1)
        with patch("asyncio.create_subprocess_exec", new_callable=AsyncMock, return_value=proc):
            with pytest.raises(AuditWorkerError) as exc_info:
                await SubprocessAuditRunner(timeout=5).run("https://a.fr")

        assert exc_info.value.kind == AuditWorkerError.WORKER_ERROR
        assert str(exc_info.value) == "Executable doesn't exist"

    async def test_invalid_json(self):
        proc = _fake_proc(stdout=b"Traceback (most recent call last):")
        with patch("asyncio.create_subprocess_exec", new_callable=AsyncMock, return_value=proc):
            with pytest.raises(AuditWorkerError) as exc_info:
                await SubprocessAuditRunner(timeout=5).run("https://a.fr")

        assert exc_info.value.kind == AuditWorkerError.INVALID_OUTPUT

    async def test_payload_not_an_audit(self):
        proc = _fake_proc(stdout=b'{"url": "https://a.fr"}')
        with patch("asyncio.create_subprocess_exec", new_callable=AsyncMock, return_value=proc):
            with pytest.raises(AuditWorkerError) as exc_info:
                await SubprocessAuditRunner(timeout=5).run("https://a.fr")

        assert exc_info.value.kind == AuditWorkerError.INVALID_OUTPUT

    async def test_spawn_failure(self):
        with patch(
            "asyncio.create_subprocess_exec",
            new_callable=AsyncMock,
            side_effect=FileNotFoundError("python9"),
        ):
            with pytest.raises(AuditWorkerError) as exc_info:
                await SubprocessAuditRunner(timeout=5, python="python9").run("https://a.fr")

        assert exc_info.value.kind == AuditWorkerError.SPAWN_FAILED


class TestInProcessAuditRunner:
    async def test_delegates_to_audit_function(self):
        audit_fn = AsyncMock(return_value=SAMPLE_AUDIT)
        result = await InProcessAuditRunner(audit_fn).run("https://bellemeche.fr", screenshots=True)

        assert result is SAMPLE_AUDIT
        audit_fn.assert_awaited_once_with("https://bellemeche.fr", screenshots=True)


class TestAuditWorkerMain:
    def test_missing_url(self, capsys):
        from prospectflow.audit_worker import main

        assert main([]) == 1
        assert json.loads(capsys.readouterr().out) == {"error": "Missing URL"}

    def test_success_writes_single_json_document(self, capsys):
        from prospectflow.audit_worker import main

        with patch(
            "prospectflow.audit_worker.audit_website", new_callable=AsyncMock, return_value=SAMPLE_AUDIT
        ) as mock_audit:
            assert main(["https://bellemeche.fr", "--screenshots"]) == 0

        out = json.loads(capsys.readouterr().out)
        assert out["url"] == "https://bellemeche.fr"
        assert out["seo_score"] == 85
        assert mock_audit.call_args.kwargs["screenshots"] is True

    def test_failure_writes_error(self, capsys):
        from prospectflow.audit_worker import main

        with patch(
            "prospectflow.audit_worker.audit_website",
            new_callable=AsyncMock,
            side_effect=RuntimeError("browser crashed"),
        ):
            assert main(["https://a.fr"]) == 1

        assert json.loads(capsys.readouterr().out) == {"error": "browser crashed"}
