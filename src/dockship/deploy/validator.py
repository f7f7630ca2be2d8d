"""Post-deployment health checks.

All checks are diagnostic: they are logged and classified into a Verdict but
never abort the pipeline. The public probe runs from the operator's machine
so it exercises the same path as real clients.
"""

from __future__ import annotations

import httpx

from dockship.lib.logging_config import get_logger
from dockship.models.deployment import DeploymentConfig
from dockship.models.outcome import DeploymentOutcome, Phase, ProbeResult, Verdict
from dockship.remote.runner import RemoteCommandRunner

logger = get_logger(__name__)

RUNTIME_ACTIVE = "systemctl is-active --quiet docker"
RUNTIME_START = "systemctl enable --now docker"
CONTAINER_HEALTH = (
    'ids=$(docker ps -q); [ -z "$ids" ] || docker inspect --format '
    "'{{.Name}} {{if .State.Health}}{{.State.Health.Status}}{{else}}none{{end}}' $ids"
)


def listening_command(port: int) -> str:
    """Command that succeeds when a TCP listener exists on ``port``."""
    return (
        "(ss -ltnH 2>/dev/null || netstat -ltn 2>/dev/null) "
        f"| grep -Eq '[:.]{port}[[:space:]]'"
    )


def backend_probe_command(port: int, timeout: float) -> str:
    """HEAD request against the workload on the host's loopback interface."""
    return (
        f"curl -sS -o /dev/null -I --max-time {timeout:g} "
        f"-w '%{{http_code}}' http://127.0.0.1:{port}/"
    )


def classify(runtime_ok: bool, backend_ok: bool, public_ok: bool) -> Verdict:
    """Map the three gating signals to a Verdict."""
    if not runtime_ok:
        return Verdict.RUNTIME_INACTIVE
    if backend_ok and public_ok:
        return Verdict.HEALTHY
    if public_ok:
        return Verdict.BACKEND_MASKED
    if backend_ok:
        return Verdict.PROXY_MISCONFIGURED
    return Verdict.UNREACHABLE


VERDICT_DETAIL: dict[Verdict, str] = {
    Verdict.HEALTHY: "Service is reachable through nginx",
    Verdict.BACKEND_MASKED: (
        "nginx answers publicly but the workload does not respond on loopback; "
        "the proxy is masking a dead backend"
    ),
    Verdict.PROXY_MISCONFIGURED: (
        "Workload responds on loopback but not through the public address; "
        "check the nginx site and firewall"
    ),
    Verdict.UNREACHABLE: "Neither the workload nor the public address responds",
    Verdict.RUNTIME_INACTIVE: "The Docker service is not active",
}


class DeploymentValidator:
    """Run best-effort runtime checks and classify the deployment.

    Args:
        runner: Remote command runner for the target host
        config: Deployment configuration
        client: HTTP client for the public probe (created per run if None)
    """

    def __init__(
        self,
        runner: RemoteCommandRunner,
        config: DeploymentConfig,
        client: httpx.Client | None = None,
    ) -> None:
        self.runner = runner
        self.config = config
        self.client = client

    def validate(self) -> DeploymentOutcome:
        """Run all checks and return the classified outcome.

        Success requires an active runtime and a responsive public address;
        a masked backend is reported but does not fail validation.
        """
        checks = [
            self.check_runtime(),
            *self.check_containers(),
            self.check_listening(),
            self.check_backend(),
            self.check_public(),
        ]
        for check in checks:
            if check.ok:
                logger.info(f"[check] {check.name}: {check.detail}")
            else:
                logger.warning(f"[check] {check.name}: {check.detail}")

        by_name = {c.name: c for c in checks}
        verdict = classify(
            runtime_ok=by_name["runtime"].ok,
            backend_ok=by_name["backend_http"].ok,
            public_ok=by_name["public_http"].ok,
        )
        success = by_name["runtime"].ok and by_name["public_http"].ok
        log = logger.info if success else logger.warning
        log(f"Validation verdict: {verdict.value}")
        return DeploymentOutcome(
            phase=Phase.VALIDATE,
            success=success,
            detail=VERDICT_DETAIL[verdict],
            verdict=verdict,
            checks=checks,
        )

    def check_runtime(self) -> ProbeResult:
        """Docker service active; one enable/start attempt if it is not."""
        if self.runner.run(RUNTIME_ACTIVE).ok:
            return ProbeResult(name="runtime", ok=True, detail="docker is active")

        logger.warning("docker is not active; attempting to start it")
        self.runner.run(RUNTIME_START, sudo=True)
        if self.runner.run(RUNTIME_ACTIVE).ok:
            return ProbeResult(name="runtime", ok=True, detail="docker started")
        return ProbeResult(name="runtime", ok=False, detail="docker is not active")

    def check_containers(self) -> list[ProbeResult]:
        """Report health status of running containers that define one."""
        result = self.runner.run(CONTAINER_HEALTH)
        if not result.ok:
            return [
                ProbeResult(
                    name="containers",
                    ok=False,
                    detail=f"cannot list containers: {result.stderr.strip()}",
                )
            ]

        probes: list[ProbeResult] = []
        running = 0
        for line in result.output.splitlines():
            parts = line.strip().lstrip("/").rsplit(" ", 1)
            if len(parts) != 2:
                continue
            running += 1
            name, status = parts
            if status == "none":
                continue
            probes.append(
                ProbeResult(
                    name=f"container:{name}",
                    ok=status in ("healthy", "starting"),
                    detail=f"health={status}",
                )
            )

        summary = ProbeResult(
            name="containers",
            ok=running > 0,
            detail=f"{running} running container(s)",
        )
        return [summary, *probes]

    def check_listening(self) -> ProbeResult:
        """Something listens on the internal port."""
        port = self.config.app_port
        if self.runner.run(listening_command(port)).ok:
            return ProbeResult(name="listening", ok=True, detail=f"port {port} is open")
        return ProbeResult(
            name="listening", ok=False, detail=f"nothing listens on port {port}"
        )

    def check_backend(self) -> ProbeResult:
        """HEAD probe against 127.0.0.1:<port> on the host."""
        port = self.config.app_port
        result = self.runner.run(backend_probe_command(port, self.config.http_timeout))
        if result.ok:
            return ProbeResult(
                name="backend_http",
                ok=True,
                detail=f"127.0.0.1:{port} answered HTTP {result.output or '?'}",
            )
        return ProbeResult(
            name="backend_http",
            ok=False,
            detail=f"127.0.0.1:{port} did not respond: {result.stderr.strip()}",
        )

    def check_public(self) -> ProbeResult:
        """HEAD probe against the public address on port 80."""
        url = f"http://{self.config.host}/"
        client = self.client or httpx.Client(timeout=self.config.http_timeout)
        try:
            response = client.head(url, follow_redirects=False)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            return ProbeResult(
                name="public_http", ok=False, detail=f"{url} did not respond: {exc}"
            )
        finally:
            if self.client is None:
                client.close()
        return ProbeResult(
            name="public_http",
            ok=True,
            detail=f"{url} answered HTTP {response.status_code}",
        )
