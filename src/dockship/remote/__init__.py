"""Remote host capabilities: command execution, transfer and scripted steps."""

from dockship.remote.runner import RemoteCommandRunner, SSHRunner, ping_host
from dockship.remote.script import RemoteScript, ScriptStep, run_step

__all__ = [
    "RemoteCommandRunner",
    "RemoteScript",
    "SSHRunner",
    "ScriptStep",
    "ping_host",
    "run_step",
]
