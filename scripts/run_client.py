#!/usr/bin/env python3
"""
Production client launcher.

Usage:
    python scripts/run_client.py                              # Use default config
    python scripts/run_client.py --config config/production.yaml
    python scripts/run_client.py --gpus 0 --gpus 1 --games 2
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from zeroclient.cli import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
