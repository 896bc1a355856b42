from flask import Flask

from .ops import create_superadmin, run_jobs, send_reminders
from .seed_demo import seed_demo

COMMANDS = (seed_demo, create_superadmin, run_jobs, send_reminders)


def register_cli(app: Flask) -> None:
    for command in COMMANDS:
        app.cli.add_command(command)


__all__ = ["register_cli", "COMMANDS"]
