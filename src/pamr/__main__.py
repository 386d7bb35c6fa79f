"""Entry point for running PAMr as a module."""

from pamr.cli import cli

if __name__ == "__main__":
    cli()
