"""Allow ``python -m corpuschat.cli`` execution."""

from corpuschat.cli.chat import main

main()
