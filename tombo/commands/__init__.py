"""CLI subcommands for tombo."""
