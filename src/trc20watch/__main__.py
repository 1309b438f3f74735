"""Entry point for running the watcher with python -m trc20watch."""

from trc20watch.runner import cli

if __name__ == "__main__":
    cli()
