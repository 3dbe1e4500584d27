"""CLI entry point for commercepix.cli module.

Enables execution via: python -m commercepix.cli <command>
"""

from commercepix.cli.maintenance import main

if __name__ == "__main__":
    main()
