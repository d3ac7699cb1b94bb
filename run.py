"""Launch the uireplay command line."""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from uireplay.main import main


if __name__ == "__main__":
    sys.exit(main())
