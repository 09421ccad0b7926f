"""
Entrypoint: run one batch of downloads into the current directory
"""

import sys

from downloader.main import main


if __name__ == "__main__":
    sys.exit(main())
