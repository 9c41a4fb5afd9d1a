"""Allow ``python -m iocsentinel``."""

from iocsentinel.cli import main

main()
