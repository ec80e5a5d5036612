"""Run the Switchboard CLI with ``python -m switchboard.cli``."""

from .app import app

if __name__ == "__main__":
    app(prog_name="switchboard")
