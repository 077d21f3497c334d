"""Performance Dashboard - Main Entry Point"""

import sys

from src.api.main import main


if __name__ == "__main__":
    sys.exit(main())
