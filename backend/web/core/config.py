"""Configuration constants for repopress web backend."""

import os
from pathlib import Path

# Local state
REPOPRESS_HOME = Path(os.environ.get("REPOPRESS_HOME", str(Path.home() / ".repopress"))).expanduser()

# Workspace (project-level .repopress/settings.json is read from here)
LOCAL_WORKSPACE_ROOT = Path.cwd().resolve()

DEFAULT_PORT = 8001
