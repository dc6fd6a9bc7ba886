"""Allow ``python -m herald``."""

from herald.cli.main import main

main()
