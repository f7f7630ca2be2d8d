"""Teardown of a deployment: containers, nginx site and project directory."""

from __future__ import annotations

import shlex
from pathlib import PurePosixPath

from dockship.config.defaults import COMPOSE_MANIFESTS, NGINX_ROOT
from dockship.deploy.provisioner import COMPOSE_PLUGIN_PRESENT
from dockship.lib.errors import CleanupError
from dockship.lib.logging_config import get_logger
from dockship.models.deployment import DeploymentConfig
from dockship.models.remote import ScriptReport
from dockship.remote.runner import RemoteCommandRunner
from dockship.remote.script import RemoteScript

logger = get_logger(__name__)


class Teardown:
    """Remove everything a deployment created on the remote host.

    Every step except removing the project directory is best effort.
    """

    def __init__(
        self,
        runner: RemoteCommandRunner,
        config: DeploymentConfig,
        nginx_root: str = NGINX_ROOT,
    ) -> None:
        self.runner = runner
        self.config = config
        self.nginx_root = PurePosixPath(nginx_root)

    def site_files(self) -> list[str]:
        """nginx site paths for both layouts."""
        filename = f"{self.config.site_name}.conf"
        return [
            str(self.nginx_root / "sites-enabled" / filename),
            str(self.nginx_root / "sites-available" / filename),
            str(self.nginx_root / "conf.d" / filename),
        ]

    def build_script(self) -> RemoteScript:
        """Assemble the teardown steps for the current host state."""
        script = RemoteScript("cleanup", error_cls=CleanupError)
        current = self.config.current_link

        compose = "docker-compose"
        if self.runner.run(COMPOSE_PLUGIN_PRESENT).ok:
            compose = "docker compose"
        for filename in COMPOSE_MANIFESTS:
            manifest = str(PurePosixPath(current) / filename)
            if self.runner.file_exists(manifest):
                script.add(
                    "compose-down",
                    f"cd {shlex.quote(current)} && {compose} "
                    f"-p {shlex.quote(self.config.site_name)} "
                    f"-f {shlex.quote(manifest)} down --remove-orphans",
                    fatal=False,
                )
                break

        name = shlex.quote(self.config.container_name)
        script.add(
            "remove-container",
            f"docker rm -f {name}",
            check=f"! docker container inspect {name} >/dev/null 2>&1",
            fatal=False,
        )
        script.add(
            "remove-site",
            "rm -f " + " ".join(shlex.quote(p) for p in self.site_files()),
            fatal=False,
            sudo=True,
        )
        script.add(
            "reload-nginx",
            "nginx -t && systemctl reload nginx",
            check="! command -v nginx >/dev/null 2>&1",
            fatal=False,
            sudo=True,
        )
        script.add(
            "remove-project",
            f"rm -rf {shlex.quote(self.config.app_base)}",
            check=f"! test -e {shlex.quote(self.config.app_base)}",
            sudo=True,
        )
        return script

    def run(self) -> ScriptReport:
        """Execute the teardown.

        Raises:
            CleanupError: If the project directory cannot be removed
        """
        logger.info(
            f"Cleaning up deployment of {self.config.site_name} on {self.config.host}"
        )
        report = self.build_script().execute(self.runner)
        logger.info(
            f"Cleanup finished: {len(report.applied)} removed, "
            f"{len(report.skipped)} already absent, {len(report.warnings)} warning(s)"
        )
        return report
