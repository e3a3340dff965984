# src/extest/__main__.py

from extest.cli.main import cli

if __name__ == "__main__":
    cli()
