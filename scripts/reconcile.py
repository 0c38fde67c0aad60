#!/usr/bin/env python3
"""
Binlog / Avro Reconciliation Tool

Runs the CLI from a source checkout without installing the package.

Usage:
    ./scripts/reconcile.py normalize /var/lib/mysql/mysql-bin.000001 < mysql-bin.000001.txt
    ./scripts/reconcile.py reconcile binlog_metadata.json avro_rows.json
"""

import sys
from pathlib import Path

# Add repository root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.cli import main


if __name__ == "__main__":
    sys.exit(main())
