"""Maintenance CLI for StorySwap.

Operator commands that run outside the web server, against the same
SQLite database the API uses:

- ``python -m storyswap.cli reap`` -- expire every pending or rejected
  swap past its deadline.  Meant for cron when the in-app reaper
  (``REAP_INTERVAL_SECONDS``) is disabled.
- ``python -m storyswap.cli stats --timeframe 7d`` -- print swap counts
  and the success rate for a timeframe.

Commands use argparse and build their services through
``storyswap.main.build_services`` so they share the API's wiring.
"""
