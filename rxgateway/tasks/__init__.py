"""Subcommands of the ``rxgateway`` command line."""
