"""Allow running the package as a module: python -m vaults_pnl"""

import sys

from vaults_pnl.cli import main

if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
