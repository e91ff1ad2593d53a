#!/usr/bin/env python3
"""
Unleash Fleet Migrator

- Move instances pinned to a custom version onto a release channel
- Move instances between release channels (e.g. stable-v5 -> stable-v6)

This script supports running directly from a source checkout that uses a
src/ layout: it adds the local `src/` directory to sys.path before importing.
For production use, prefer installing the project and using the provided
console script.

Examples:
  # Preview which instances would move
  python3 main.py --namespace unleash --channel-map stable-v5:stable-v6 --dry-run

  # Migrate custom-version instances to the stable channel
  python3 main.py --namespace unleash --migrate-to-channel stable --migration-delay 1m

  # Use the control plane's environment configuration
  python3 main.py --from-env
"""

import os
import sys

# Add src/ to path to import modules directly
REPO_ROOT = os.path.dirname(os.path.abspath(__file__))
SRC_PATH = os.path.join(REPO_ROOT, "src")
if SRC_PATH not in sys.path:
    sys.path.insert(0, SRC_PATH)

from cli import main

if __name__ == "__main__":
    sys.exit(main())
