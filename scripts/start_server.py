#!/usr/bin/env python3
# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Start the FM last-heard processing server.
"""

import sys
from pathlib import Path

# Add src to path for running from a checkout
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from fmlastheard.processing.server import run

if __name__ == "__main__":
    run()
