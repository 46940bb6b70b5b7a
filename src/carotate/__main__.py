"""Allow ``python -m carotate``."""

from carotate.cli.main import main

main()
