"""Run the server: ``python -m bucketview [config.yaml]``.

Without a config file the S3_* environment variables are used.
"""

import sys

from bucketview.browser import Browser
from bucketview.exceptions import ConfigError


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    try:
        browser = Browser.from_config(args[0]) if args else Browser.from_env()
    except ConfigError as e:
        print(f"bucketview: {e}", file=sys.stderr)
        return 2
    browser.serve()
    return 0


if __name__ == "__main__":
    sys.exit(main())
