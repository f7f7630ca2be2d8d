"""nginx reverse-proxy site rendering and installation.

The site is rendered locally from a Jinja2 template and checked for
unresolved placeholders before anything is uploaded. On the host it is
installed into the distro's layout, syntax-checked with ``nginx -t`` and only
then reloaded. A configuration that fails the check is never made live.
"""

from __future__ import annotations

import re
import shlex
import tempfile
from pathlib import Path, PurePosixPath

from jinja2 import Environment, StrictUndefined, TemplateError

from dockship.config.defaults import NGINX_ROOT
from dockship.lib.errors import ProxyConfigError, TemplateRenderError
from dockship.lib.logging_config import get_logger
from dockship.models.deployment import DeploymentConfig, ProxyLayout, ProxySite
from dockship.remote.runner import RemoteCommandRunner

logger = get_logger(__name__)

# Jinja2 template for the nginx site; parameterized only by the internal port
NGINX_SITE_TEMPLATE = """\
# Managed by dockship. Changes are overwritten on the next deployment.
server {
    listen 80;
    listen [::]:80;
    server_name _;

    location / {
        proxy_pass http://127.0.0.1:{{ internal_port }};
        proxy_http_version 1.1;
        proxy_set_header Host $host;
        proxy_set_header X-Real-IP $remote_addr;
        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
        proxy_set_header X-Forwarded-Proto $scheme;
        proxy_connect_timeout 5s;
        proxy_read_timeout 60s;
    }
}
"""

# Jinja2 blocks, shell-style ${VAR} and legacy __NAME__ markers
UNRESOLVED_PATTERN = re.compile(
    r"\{\{.*?\}\}|\{%.*?%\}|\{#.*?#\}|\$\{[A-Za-z_][A-Za-z0-9_]*\}|__[A-Z][A-Z0-9_]*__"
)

_environment = Environment(
    undefined=StrictUndefined,
    keep_trailing_newline=True,
    autoescape=False,  # nginx config, not HTML  # noqa: S701  # nosec B701
)


def assert_resolved(content: str, template_name: str) -> None:
    """Raise if ``content`` still contains placeholder markers.

    Raises:
        TemplateRenderError: Listing the unresolved markers found
    """
    leftovers = sorted(set(UNRESOLVED_PATTERN.findall(content)))
    if leftovers:
        markers = ", ".join(leftovers)
        raise TemplateRenderError(
            template=template_name,
            message=f"unresolved placeholder(s) after rendering: {markers}",
        )


def render_site(
    site_name: str,
    internal_port: int,
    template: str = NGINX_SITE_TEMPLATE,
) -> ProxySite:
    """Render the nginx site for ``internal_port``.

    Raises:
        TemplateRenderError: If the template references an undefined
            variable, is invalid, or leaves placeholders unresolved
    """
    try:
        content = _environment.from_string(template).render(internal_port=internal_port)
    except TemplateError as exc:
        raise TemplateRenderError(template=site_name, message=str(exc)) from exc

    assert_resolved(content, site_name)
    return ProxySite(site_name=site_name, internal_port=internal_port, content=content)


class ProxyConfigurer:
    """Install a rendered site into nginx and reload it safely.

    Example:
        >>> configurer = ProxyConfigurer(runner, config)
        >>> site = configurer.render(8000)
        >>> configurer.configure(site)
    """

    def __init__(
        self,
        runner: RemoteCommandRunner,
        config: DeploymentConfig,
        template: str | None = None,
        nginx_root: str = NGINX_ROOT,
    ) -> None:
        self.runner = runner
        self.config = config
        self.template = template or NGINX_SITE_TEMPLATE
        self.nginx_root = PurePosixPath(nginx_root)

    def render(self, internal_port: int) -> ProxySite:
        """Render the site for this deployment without touching the host."""
        return render_site(self.config.site_name, internal_port, self.template)

    def detect_layout(self) -> ProxyLayout:
        """Split layouts have a sites-available directory; others use conf.d."""
        if self.runner.dir_exists(str(self.nginx_root / "sites-available")):
            return ProxyLayout.SPLIT
        return ProxyLayout.CONF_D

    def site_paths(self, layout: ProxyLayout) -> tuple[str, str | None]:
        """Return (config path, enabled symlink path) for a layout."""
        filename = f"{self.config.site_name}.conf"
        if layout == ProxyLayout.SPLIT:
            return (
                str(self.nginx_root / "sites-available" / filename),
                str(self.nginx_root / "sites-enabled" / filename),
            )
        return str(self.nginx_root / "conf.d" / filename), None

    def configure(self, site: ProxySite) -> ProxyLayout:
        """Upload, enable, validate and reload the site.

        Returns:
            The layout the site was installed into

        Raises:
            TemplateRenderError: If the site content has unresolved markers
            ProxyConfigError: If upload, installation, the syntax check or
                the reload fails. After a failed syntax check the new file
                stays on disk but nginx is not reloaded.
        """
        assert_resolved(site.content, site.site_name)

        layout = self.detect_layout()
        config_path, enabled_path = self.site_paths(layout)
        logger.info(f"Installing nginx site {site.site_name} ({layout.value} layout)")

        self._upload(site, config_path)
        if enabled_path is not None:
            self._enable(config_path, enabled_path)
        else:
            self._disable_packaged_default()

        self.validate()
        self.reload()
        return layout

    def validate(self) -> None:
        """Run ``nginx -t``; a failure is fatal and prevents the reload."""
        result = self.runner.run("nginx -t", sudo=True)
        if not result.ok:
            detail = result.stderr.strip() or result.output
            logger.error(f"nginx configuration test failed; not reloading: {detail}")
            raise ProxyConfigError(
                operation="nginx-test",
                message=f"nginx configuration test failed: {detail}",
            )
        logger.info("nginx configuration test passed")

    def reload(self) -> None:
        """Reload nginx gracefully, keeping in-flight connections."""
        result = self.runner.run("systemctl reload nginx", sudo=True)
        if not result.ok:
            raise ProxyConfigError(
                operation="nginx-reload",
                message=f"nginx reload failed: {result.stderr.strip()}",
            )
        logger.info("nginx reloaded")

    def _upload(self, site: ProxySite, config_path: str) -> None:
        staging = f"/tmp/dockship-{site.site_name}.conf"  # noqa: S108  # nosec B108
        with tempfile.TemporaryDirectory(prefix="dockship-proxy-") as tmp:
            local = Path(tmp) / f"{site.site_name}.conf"
            local.write_text(site.content, encoding="utf-8")
            result = self.runner.transfer(local, staging)
        if not result.ok:
            raise ProxyConfigError(
                operation="upload",
                message=f"Uploading nginx site failed: {result.stderr.strip()}",
            )

        install = self.runner.run(
            f"install -D -m 0644 {shlex.quote(staging)} {shlex.quote(config_path)} && "
            f"rm -f {shlex.quote(staging)}",
            sudo=True,
        )
        if not install.ok:
            raise ProxyConfigError(
                operation="install",
                message=f"Cannot install {config_path}: {install.stderr.strip()}",
            )

    def _enable(self, config_path: str, enabled_path: str) -> None:
        enabled_dir = str(PurePosixPath(enabled_path).parent)
        result = self.runner.run(
            f"mkdir -p {shlex.quote(enabled_dir)} && "
            f"ln -sfn {shlex.quote(config_path)} {shlex.quote(enabled_path)}",
            sudo=True,
        )
        if not result.ok:
            raise ProxyConfigError(
                operation="enable",
                message=f"Cannot enable site: {result.stderr.strip()}",
            )

        if self.config.site_name != "default":
            default_site = shlex.quote(str(PurePosixPath(enabled_dir) / "default"))
            disabled = self.runner.run(f"rm -f {default_site}", sudo=True)
            if not disabled.ok:
                logger.warning(
                    "Could not disable the default nginx site: "
                    f"{disabled.stderr.strip()}"
                )

    def _disable_packaged_default(self) -> None:
        """Move a packaged ``conf.d/default.conf`` out of nginx's include glob.

        It sorts before the site and would otherwise be the default server
        for port 80.
        """
        if self.config.site_name == "default":
            return
        default_conf = shlex.quote(str(self.nginx_root / "conf.d" / "default.conf"))
        disabled = self.runner.run(
            f"if [ -f {default_conf} ]; then "
            f"mv -f {default_conf} {default_conf}.disabled; fi",
            sudo=True,
        )
        if not disabled.ok:
            logger.warning(
                f"Could not disable the default nginx site: {disabled.stderr.strip()}"
            )
