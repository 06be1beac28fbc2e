#!/usr/bin/env python3
"""
refract - Reflected parameter and unfiltered character prober

Entry point for running the CLI from a source checkout.

Usage:
    cat urls.txt | python main.py scan
    python main.py scan -f urls.txt --json -o results.json
"""

from refract.cli import cli


if __name__ == '__main__':
    cli()
