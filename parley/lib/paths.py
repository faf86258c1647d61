import os
from pathlib import Path


def storage_root() -> Path:
    """Storage root for agents, messages and instance mappings.

    PARLEY_HOME overrides the default ~/.parley (used for isolated runs).
    """
    override = os.environ.get("PARLEY_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".parley"


def agents_file(root: Path) -> Path:
    return root / "agents.json"


def instances_file(root: Path) -> Path:
    return root / "instances.json"


def messages_db(root: Path) -> Path:
    return root / "messages.db"


def config_file(root: Path) -> Path:
    return root / "config.yaml"
