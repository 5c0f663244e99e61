#!/usr/bin/env python3
"""
dtagent - Main Entry Point

This is the thin orchestration layer that:
1. Loads configuration
2. Builds the agent
3. Registers with the controller
4. Runs the control API server

All business logic is in the modules, following black box principles.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
import uvicorn
from dotenv import load_dotenv

from dtagent.config import AgentConfig, load_config
from dtagent.logging_config import configure_logging, get_logging_config
from dtagent.modules.agent import Agent
from dtagent.modules.api import create_app

logger = logging.getLogger("dtagent")


def build_server(agent: Agent, config: AgentConfig) -> uvicorn.Server:
    """Create the uvicorn server serving the agent's control API."""
    app = create_app(agent)
    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=config.ip,
            port=config.port,
            log_config=get_logging_config(config.log_level, config.agent_log_file),
        )
    )

    def release_endpoint() -> None:
        server.should_exit = True

    agent.add_shutdown_callback(release_endpoint)
    return server


def run(config: AgentConfig) -> None:
    """Build the agent, register it and serve until shutdown."""
    try:
        agent = Agent(config)
    except (OSError, ImportError, ValueError) as e:
        logger.error(f"Failed to create agent: {e}")
        sys.exit(1)

    if not agent.register():
        logger.warning("Registration with controller failed, serving anyway")

    server = build_server(agent, config)
    logger.info(f"Control API listening on {config.addr}")
    try:
        server.run()
    finally:
        agent.shutdown()


@click.command()
@click.option("--config", "config_file", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="YAML configuration file")
@click.option("--ip", help="Agent IP announced to the controller")
@click.option("--port", type=int, help="Control API port")
@click.option("--ctrl-addr", help="Controller address")
@click.option("--instance-bin", type=click.Path(path_type=Path), help="Instance launch target")
@click.option("--instance-dir", type=click.Path(path_type=Path), help="Instance working directory")
@click.option("--log-file", type=click.Path(path_type=Path), help="Instance output log")
@click.option("--backup-dir", type=click.Path(path_type=Path), help="Directory receiving backups")
@click.option("--register-attempts", type=int, help="Registration attempts before giving up")
@click.option("--command-timeout", type=float, help="Timeout in seconds for the instance prepare command")
@click.option("--fault-provider", help="Fault provider import path (module:Class)")
@click.option("--log-level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
@click.option("--agent-log-file", type=click.Path(path_type=Path), help="File also receiving agent logs")
def cli(config_file: Optional[Path], **overrides):
    """Run the distributed testing node agent."""
    load_dotenv()
    try:
        config = load_config(config_file, overrides)
    except ValueError as e:
        raise click.UsageError(str(e))

    configure_logging(config.log_level, config.agent_log_file)
    run(config)


if __name__ == "__main__":
    cli()
