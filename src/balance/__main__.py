"""
Balance - Allows running the package with ``python -m balance``.

Created by Balance Terminal contributors
"""

import sys

from .main import main

if __name__ == "__main__":
    sys.exit(main())
