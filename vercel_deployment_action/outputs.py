"""GitHub Actions file commands for step outputs and exported variables.

Values are written in the heredoc form ``name<<DELIMITER`` so multi-line
messages survive. Without an output file the legacy ``set-output`` command is
printed to stdout; variables cannot be exported without ``GITHUB_ENV``.
"""

import uuid
from typing import Optional

import click
from loguru import logger


def escape_command_data(value: str) -> str:
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def _format_file_command(name: str, value: str) -> str:
    delimiter = f"ghadelimiter_{uuid.uuid4()}"
    if delimiter in name or delimiter in value:
        raise ValueError(f"Unexpected input: name or value contains {delimiter}")
    return f"{name}<<{delimiter}\n{value}\n{delimiter}\n"


def _append(path: str, text: str) -> None:
    with open(path, "a", encoding="utf-8") as command_file:
        command_file.write(text)


class ActionOutputs:
    def __init__(self, output_file: Optional[str] = None, env_file: Optional[str] = None):
        self.output_file = output_file
        self.env_file = env_file
        self.logger = logger

    def set_output(self, name: str, value: str) -> None:
        if self.output_file:
            _append(self.output_file, _format_file_command(name, value))
        else:
            click.echo(f"::set-output name={name}::{escape_command_data(value)}")
        self.logger.debug(f"Set output {name}")

    def export_variable(self, name: str, value: str) -> None:
        if not self.env_file:
            self.logger.warning(f"GITHUB_ENV is not set, {name} was not exported")
            return
        _append(self.env_file, _format_file_command(name, value))
        self.logger.debug(f"Exported {name}")

    @staticmethod
    def error(message: str) -> None:
        click.echo(f"::error::{escape_command_data(message)}")
