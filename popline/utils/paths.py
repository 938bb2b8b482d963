"""Centralized path definitions for popline.

Everything lives under ``~/.popline`` unless ``POPLINE_HOME`` points
elsewhere. Directories are created by the code that writes into them.
"""

import os
from pathlib import Path

# Base application directory
POPLINE_DIR = Path(os.environ.get("POPLINE_HOME", Path.home() / ".popline"))

# Subdirectories
LOGS_DIR = POPLINE_DIR / "logs"

# Specific files
CONFIG_PATH = POPLINE_DIR / "config.json"
