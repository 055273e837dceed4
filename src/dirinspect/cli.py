"""
Command Line Interface for the inspection server and client
"""
import sys
from pathlib import Path

import click

from dirinspect.client.client import InspectClient, ProtocolError
from dirinspect.core.config import Config
from dirinspect.server.server import SessionServer
from dirinspect.utils.logger import setup_logging


def _load_config(config_file) -> Config:
    if config_file:
        return Config.load_from_file(config_file)
    return Config.from_env()


@click.group()
@click.option('--config', '-c', type=click.Path(exists=True, dir_okay=False), help='Configuration file path')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.pass_context
def cli(ctx, config, verbose):
    """Remote directory inspection"""
    ctx.ensure_object(dict)
    ctx.obj['config'] = _load_config(config)
    ctx.obj['verbose'] = verbose


@cli.command()
@click.option('--host', help='Host to bind to (overrides config)')
@click.option('--port', type=int, help='Port to bind to (overrides config)')
@click.option('--concurrency', type=click.Choice(['process', 'thread']),
              help='Session isolation model (overrides config)')
@click.option('--credentials', help='Credential store file (overrides config)')
@click.pass_context
def serve(ctx, host, port, concurrency, credentials):
    """Start the inspection server"""
    config: Config = ctx.obj['config']
    if host:
        config.server.host = host
    if port is not None:
        config.server.port = port
    if concurrency:
        config.server.concurrency = concurrency
    if credentials:
        config.storage.credentials_file = credentials

    level = 'DEBUG' if ctx.obj['verbose'] else config.logging.level
    setup_logging(level=level, log_file=config.logging.file, log_format=config.logging.format)

    server = SessionServer(config)
    click.echo(f"Starting server on {config.server.host}:{config.server.port}")
    click.echo("Press Ctrl+C to stop the server")
    try:
        server.serve_forever()
    except OSError as e:
        click.echo(f"Server error: {e}", err=True)
        sys.exit(1)
    click.echo("Server terminated cleanly.")


def _client_options(func):
    func = click.option('--host', help='Server host (overrides config)')(func)
    func = click.option('--port', type=int, help='Server port (overrides config)')(func)
    func = click.option('--user', '-u', prompt='Username', help='Account name')(func)
    func = click.option('--password', prompt='Password', hide_input=True,
                        help='Account password (prompted if omitted)')(func)
    return func


def _open_session(ctx, host, port, user, password) -> InspectClient:
    config: Config = ctx.obj['config']
    if ctx.obj['verbose']:
        setup_logging(level='DEBUG', log_format=config.logging.format)

    client = InspectClient(host or config.client.host, port or config.client.port,
                           config.client.buffer_size)
    try:
        client.connect()
        verdict = client.login(user, password)
    except (OSError, ProtocolError) as e:
        client.close()
        click.echo(f"Connection error: {e}", err=True)
        sys.exit(1)

    click.echo(verdict.rstrip('\n'), err=True)
    if not client.accepted(verdict):
        client.close()
        sys.exit(1)
    return client


def _run_command(client: InspectClient, action):
    try:
        result = action()
        client.exit()
        return result
    except (OSError, ProtocolError) as e:
        click.echo(f"Session error: {e}", err=True)
        sys.exit(1)
    finally:
        client.close()


@cli.command()
@click.argument('path')
@_client_options
@click.pass_context
def traverse(ctx, path, host, port, user, password):
    """List every file under PATH on the server"""
    client = _open_session(ctx, host, port, user, password)
    click.echo(_run_command(client, lambda: client.traverse(path)))


@cli.command()
@click.argument('path')
@click.argument('pattern')
@_client_options
@click.pass_context
def search(ctx, path, pattern, host, port, user, password):
    """Find files under PATH whose content contains PATTERN"""
    client = _open_session(ctx, host, port, user, password)
    click.echo(_run_command(client, lambda: client.search(path, pattern)))


@cli.command()
@click.argument('path')
@click.option('--output', '-o', type=click.Path(dir_okay=False, writable=True),
              help='Write the file to this path instead of stdout')
@_client_options
@click.pass_context
def inspect(ctx, path, output, host, port, user, password):
    """Stream the content of the file at PATH"""
    client = _open_session(ctx, host, port, user, password)
    content = _run_command(client, lambda: client.inspect(path))
    if output:
        Path(output).write_bytes(content)
        click.echo(f"Saved {len(content)} bytes to {output}", err=True)
    else:
        click.echo(content, nl=False)


@cli.command()
@click.option('--output', '-o', default='dirinspect_config.json', help='Output configuration file')
def init_config(output):
    """Initialize a configuration file with default settings"""
    Config().save_to_file(output)
    click.echo(f"Configuration file created: {output}")
    click.echo("Edit the file to customize settings, then use:")
    click.echo(f"  dirinspect --config {output} serve")


def main():
    """Main entry point"""
    cli()


if __name__ == '__main__':
    main()
