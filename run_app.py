#!/usr/bin/env python3
"""
Launcher script for Quote Vault.
Runs the desktop app from the app directory.
"""

import os
import sys
from pathlib import Path


def main():
    script_dir = Path(__file__).parent
    app_dir = script_dir / "app"

    if not app_dir.exists():
        print("Error: app directory not found!")
        print("Make sure you're running this from the project root directory.")
        sys.exit(1)

    os.chdir(app_dir)
    sys.path.insert(0, str(app_dir))

    try:
        from main import main as app_main
    except ImportError as e:
        print(f"Error importing main application: {e}")
        print("Make sure all required dependencies are installed:")
        print("pip install -e .")
        sys.exit(1)

    app_main()


if __name__ == "__main__":
    main()
