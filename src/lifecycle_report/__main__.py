from __future__ import annotations

import sys

from lifecycle_report import main as main_module

if __name__ == "__main__":
    raise SystemExit(main_module.main(sys.argv[1:]))
