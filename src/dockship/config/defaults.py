"""Default configuration values for dockship."""

# Deployment defaults, overridable by deploy.yaml, DOCKSHIP_* env vars and CLI
DEFAULT_DEPLOYMENT_CONFIG: dict[str, int | float | str] = {
    "site_name": "myapp",
    "app_base": "/opt/myapp",
    "container_name": "myapp",
    "image_name": "myapp",
    "ssh_port": 22,
    "connect_timeout": 10,  # seconds
    "http_timeout": 5.0,  # seconds
    "keep_logs": 30,
}

DEFAULT_CONFIG_FILE = "deploy.yaml"
DEFAULT_LOG_DIR = "."
# Suggested answer when prompting for the SSH key; never applied silently
DEFAULT_SSH_KEY = "~/.ssh/id_rsa"

# Parameters prompted for when unset, with their prompt text
REQUIRED_PARAMETERS: dict[str, str] = {
    "repository_url": "Git repository URL",
    "branch": "Branch",
    "host": "Remote host (IP or DNS name)",
    "user": "Remote SSH user",
    "ssh_key_path": "SSH private key path",
    "app_port": "Application internal port",
}

# Suggested answers for prompts; also the values used when unset non-interactively
PROMPT_DEFAULTS: dict[str, int | str] = {
    "branch": "main",
    "app_port": 8000,
}

# Optional secret prompted with hidden input
SECRET_PARAMETERS: dict[str, str] = {
    "git_token": "Git personal access token (leave blank for none)",
}

# Environment variable to field name mapping
ENV_VAR_MAP: dict[str, str] = {
    "repository_url": "DOCKSHIP_REPOSITORY_URL",
    "branch": "DOCKSHIP_BRANCH",
    "host": "DOCKSHIP_HOST",
    "user": "DOCKSHIP_USER",
    "ssh_key_path": "DOCKSHIP_SSH_KEY",
    "git_token": "DOCKSHIP_GIT_TOKEN",
    "app_port": "DOCKSHIP_APP_PORT",
    "site_name": "DOCKSHIP_SITE_NAME",
    "app_base": "DOCKSHIP_APP_BASE",
    "container_name": "DOCKSHIP_CONTAINER_NAME",
    "image_name": "DOCKSHIP_IMAGE_NAME",
    "ssh_port": "DOCKSHIP_SSH_PORT",
    "connect_timeout": "DOCKSHIP_CONNECT_TIMEOUT",
    "http_timeout": "DOCKSHIP_HTTP_TIMEOUT",
    "keep_logs": "DOCKSHIP_KEEP_LOGS",
}

# Remote layout and tooling
EXCLUDE_PATTERNS: tuple[str, ...] = (".git", "node_modules")
COMPOSE_MANIFESTS: tuple[str, ...] = ("docker-compose.yml", "docker-compose.yaml")
NGINX_ROOT = "/etc/nginx"
DOCKER_GROUP = "docker"
COMPOSE_RELEASE_URL = (
    "https://github.com/docker/compose/releases/latest/download/"
    "docker-compose-$(uname -s)-$(uname -m)"
)
