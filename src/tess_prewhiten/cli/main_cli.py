"""CLI entrypoint for tess-prewhiten.

Usage:
    tpw prewhiten --input lightcurve.csv [options]
    tpw periodogram --input lightcurve.csv [options]

Example:
    tpw prewhiten -i lc.csv --preset full --seed 7 --table-out freqs.csv --out run.json
"""

from __future__ import annotations

import sys

import click

from tess_prewhiten.cli.prewhiten_cli import periodogram_command, prewhiten_command


@click.group()
@click.version_option(package_name="tess-prewhiten")
def cli() -> None:
    """tess-prewhiten CLI for Lomb-Scargle prewhitening."""
    pass


cli.add_command(prewhiten_command)
cli.add_command(periodogram_command)


def main() -> int:
    """Main entry point for the CLI."""
    try:
        cli()
        return 0
    except click.ClickException as e:
        e.show()
        return 1
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
