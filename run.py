#!/usr/bin/env python3
"""
Launcher for Feed Bouncer when running from a source checkout.
Equivalent to the installed `feed-bouncer` command.
"""
import sys
from pathlib import Path

# Ensure the project root is in the Python path
project_root = Path(__file__).resolve().parent
sys.path.insert(0, str(project_root))

from feed_bouncer.main import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
