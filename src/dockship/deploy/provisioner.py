"""Idempotent provisioning of the remote host's runtime dependencies.

Ensures the container runtime, a compose tool and nginx are installed, that
the deploying user can talk to the Docker daemon, and that both services are
enabled and running. Every step is guarded by a check, so re-running on a
provisioned host applies nothing.
"""

from __future__ import annotations

import shlex

from dockship.config.defaults import COMPOSE_RELEASE_URL, DOCKER_GROUP
from dockship.lib.errors import ProvisioningError
from dockship.lib.logging_config import get_logger
from dockship.models.deployment import DeploymentConfig, ProvisionReport
from dockship.models.remote import ScriptReport
from dockship.remote.runner import RemoteCommandRunner
from dockship.remote.script import RemoteScript, ScriptStep, run_step

logger = get_logger(__name__)

# systemd hosts only; services are managed with systemctl
PACKAGE_MANAGERS: tuple[str, ...] = ("apt-get", "dnf", "yum", "zypper")

INSTALL_TEMPLATES: dict[str, str] = {
    "apt-get": (
        "DEBIAN_FRONTEND=noninteractive apt-get update -y && "
        "DEBIAN_FRONTEND=noninteractive apt-get install -y {packages}"
    ),
    "dnf": "dnf install -y {packages}",
    "yum": "yum install -y {packages}",
    "zypper": "zypper --non-interactive install {packages}",
}

# Package managers whose repositories ship the compose plugin
COMPOSE_PLUGIN_MANAGERS = frozenset({"apt-get", "dnf", "yum"})

DETECT_OS = '. /etc/os-release 2>/dev/null && echo "${ID_LIKE:-$ID}"'
DETECT_PACKAGE_MANAGER = (
    f"for pm in {' '.join(PACKAGE_MANAGERS)}; do "
    'command -v "$pm" >/dev/null 2>&1 && echo "$pm" && break; done'
)
DOCKER_PRESENT = "command -v docker >/dev/null 2>&1"
COMPOSE_PLUGIN_PRESENT = "docker compose version >/dev/null 2>&1"
COMPOSE_STANDALONE_PRESENT = "command -v docker-compose >/dev/null 2>&1"
NGINX_PRESENT = "command -v nginx >/dev/null 2>&1"
SYSTEMD_PRESENT = "command -v systemctl >/dev/null 2>&1"
DOCKER_INSTALL = "curl -fsSL https://get.docker.com | sh"
COMPOSE_BINARY = "/usr/local/bin/docker-compose"


def install_command(package_manager: str, *packages: str) -> str:
    """Return the non-interactive install command for a package manager."""
    template = INSTALL_TEMPLATES[package_manager]
    return template.format(packages=" ".join(shlex.quote(p) for p in packages))


def service_enabled_check(service: str) -> str:
    """Check command that passes when a systemd unit is enabled and active."""
    unit = shlex.quote(service)
    return f"systemctl is-enabled --quiet {unit} && systemctl is-active --quiet {unit}"


class DependencyProvisioner:
    """Install and start Docker, compose and nginx on the remote host.

    Example:
        >>> report = DependencyProvisioner(runner, config).provision()
        >>> report.compose_command
        'docker compose'
    """

    def __init__(self, runner: RemoteCommandRunner, config: DeploymentConfig) -> None:
        self.runner = runner
        self.config = config

    def detect_os(self) -> tuple[str, str | None]:
        """Return the OS family and the first available package manager."""
        family_result = self.runner.run(DETECT_OS)
        os_family = family_result.output.split()[0] if family_result.output else ""
        pm_result = self.runner.run(DETECT_PACKAGE_MANAGER)
        package_manager = pm_result.output.splitlines()[0] if pm_result.output else None
        if package_manager not in INSTALL_TEMPLATES:
            package_manager = None
        return os_family or "unknown", package_manager

    def provision(self) -> ProvisionReport:
        """Bring the host to the provisioned state.

        Returns:
            ProvisionReport with OS details, the compose command to use and
            the per-step results

        Raises:
            ProvisioningError: If a required dependency cannot be installed
        """
        os_family, package_manager = self.detect_os()
        logger.info(
            f"Remote OS family: {os_family}; "
            f"package manager: {package_manager or 'none found'}"
        )
        if not self.runner.run(SYSTEMD_PRESENT).ok:
            raise ProvisioningError(
                operation="detect-init",
                message="systemctl not found; dockship requires a systemd host",
            )

        report = ScriptReport()
        runtime = RemoteScript("runtime", error_cls=ProvisioningError).add(
            "install-docker", DOCKER_INSTALL, check=DOCKER_PRESENT, sudo=True
        )
        report.steps.extend(runtime.execute(self.runner).steps)

        compose_command = self._ensure_compose(package_manager, report)

        if not self.runner.run(NGINX_PRESENT).ok and package_manager is None:
            raise ProvisioningError(
                operation="install-nginx",
                message="nginx is not installed and no supported package manager "
                f"was found (tried: {', '.join(PACKAGE_MANAGERS)})",
            )
        services = self._services_script(package_manager).execute(self.runner)
        report.steps.extend(services.steps)

        for warning in report.warnings:
            logger.warning(f"Provisioning step '{warning.name}' did not complete")
        logger.info(
            f"Provisioning done: {len(report.applied)} applied, "
            f"{len(report.skipped)} already satisfied"
        )
        return ProvisionReport(
            os_family=os_family,
            package_manager=package_manager,
            compose_command=compose_command,
            script=report,
        )

    def _ensure_compose(self, package_manager: str | None, report: ScriptReport) -> str:
        """Make a compose tool available, preferring the Docker CLI plugin.

        Order: existing plugin, distro plugin package, existing standalone
        binary, downloaded standalone release binary for the host's OS and
        architecture.
        """
        if package_manager in COMPOSE_PLUGIN_MANAGERS:
            step = ScriptStep(
                name="install-compose-plugin",
                action=install_command(package_manager, "docker-compose-plugin"),
                check=COMPOSE_PLUGIN_PRESENT,
                fatal=False,
                sudo=True,
            )
            report.steps.append(run_step(self.runner, step, ProvisioningError))

        if self.runner.run(COMPOSE_PLUGIN_PRESENT).ok:
            return "docker compose"

        download = ScriptStep(
            name="install-compose-binary",
            action=(
                f'curl -fsSL "{COMPOSE_RELEASE_URL}" -o {COMPOSE_BINARY} && '
                f"chmod +x {COMPOSE_BINARY}"
            ),
            check=COMPOSE_STANDALONE_PRESENT,
            sudo=True,
        )
        report.steps.append(run_step(self.runner, download, ProvisioningError))
        return "docker-compose"

    def _services_script(self, package_manager: str | None) -> RemoteScript:
        user = shlex.quote(self.config.user)
        script = RemoteScript("services", error_cls=ProvisioningError)
        if package_manager is not None:
            script.add(
                "install-nginx",
                install_command(package_manager, "nginx"),
                check=NGINX_PRESENT,
                sudo=True,
            )
        script.add(
            "docker-group",
            f"usermod -aG {DOCKER_GROUP} {user}",
            check=f"id -nG {user} | tr ' ' '\\n' | grep -qx {DOCKER_GROUP}",
            sudo=True,
        )
        script.add(
            "enable-docker",
            "systemctl enable --now docker",
            check=service_enabled_check("docker"),
            sudo=True,
        )
        script.add(
            "enable-nginx",
            "systemctl enable --now nginx",
            check=service_enabled_check("nginx"),
            sudo=True,
        )
        return script
