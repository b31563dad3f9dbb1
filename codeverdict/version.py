import argparse
from importlib import metadata


def get_version() -> str:
    # Fall back to "unknown", e.g., when running from a source checkout that
    # has not been installed
    try:
        return metadata.version('codeverdict')
    except metadata.PackageNotFoundError:
        return 'unknown'


def add_version_arg(parser: argparse.ArgumentParser) -> None:
    """Adds the --version argument to the parser"""
    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {get_version()}',
    )
