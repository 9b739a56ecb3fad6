"""
Main entry point for running the footprint model.

Usage:
    python -m vm_footprint_model configs/example.json
    python -m vm_footprint_model --list-instance-types azure

Accepts the same arguments as the vm-footprint command.
"""

import sys

from .cli import main


if __name__ == "__main__":
    sys.exit(main())
