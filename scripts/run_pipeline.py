from __future__ import annotations

import subprocess
import sys


def main():
    subprocess.run(
        [sys.executable, "-m", "taskforce.entrypoints.cli", "--env", "dev"],
        check=True,
    )


if __name__ == "__main__":
    main()
