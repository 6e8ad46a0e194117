"""Allow ``python -m storyswap.cli`` execution."""

from storyswap.cli.swaps import main

main()
