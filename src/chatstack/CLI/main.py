"""
Command Line Interface for chatstack.
"""
import logging
import os
import click
from ..errors import ChatstackError, ResetConfirmationDeclined
from ..MODELS.operation_report import OperationReport, ResetReport
from ..MODELS.stack_config import default_stack
from ..PARSERS.stack_parser import StackParser
from ..MANAGERS.environment_manager import EnvironmentManager
from ..MANAGERS.preflight import Preflight
from ..MANAGERS.repository_manager import RepositoryManager
from ..MANAGERS.service_orchestrator import ServiceOrchestrator
from ..RUNNERS.docker_runtime import DockerRuntime
from ..UTILS.operator_prompt import ClickPrompt

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


class ClickEchoHandler(logging.Handler):
    """
    Logging handler writing through click, so output follows the active streams.
    """
    def emit(self, record):
        try:
            message = self.format(record)
            color = {logging.WARNING: "yellow", logging.ERROR: "red", logging.CRITICAL: "red"}.get(record.levelno)
            click.secho(message, fg=color, err=True)
        except Exception:
            self.handleError(record)


def configure_logging(verbose: bool):
    root = logging.getLogger("chatstack")
    for handler in list(root.handlers):
        if isinstance(handler, ClickEchoHandler):
            root.removeHandler(handler)
    handler = ClickEchoHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)


def _get(ctx, key, factory):
    """
    Returns a collaborator from the context object, building it on first use.
    """
    if ctx.obj.get(key) is None:
        ctx.obj[key] = factory()
    return ctx.obj[key]


def _orchestrator(ctx) -> ServiceOrchestrator:
    def build():
        kwargs = {}
        if ctx.obj.get('sleep') is not None:
            kwargs['sleep'] = ctx.obj['sleep']
        return ServiceOrchestrator(
            ctx.obj['config'],
            _get(ctx, 'runtime', DockerRuntime),
            prompt=_get(ctx, 'prompt', ClickPrompt),
            **kwargs,
        )
    return _get(ctx, 'orchestrator', build)


def _echo_report(report: OperationReport):
    for name in report.skipped:
        click.echo(f"  skipped  {name}")
    for failure in report.failures:
        click.secho(f"  failed   {failure}", fg="red")
    if report.ok:
        click.secho(f"{report.operation}: done ({len(report.succeeded)} ok)", fg="green")
    else:
        click.secho(f"{report.operation}: {len(report.failures)} failure(s): "
                    f"{', '.join(report.failed_targets())}", fg="red")


def _finish(ctx, report: OperationReport):
    _echo_report(report)
    if not report.ok:
        ctx.exit(1)


@click.group(invoke_without_command=True, context_settings=CONTEXT_SETTINGS)
@click.option('--config', '-c', 'config_file', default=None, help='Stack file overriding the built-in stack')
@click.option('--verbose', '-v', is_flag=True, help='Show runtime commands')
@click.pass_context
def cli(ctx, config_file, verbose):
    """
    Chatstack - deploy and operate the chatbot stack.

    Runs 'deploy' when no command is given.
    """
    ctx.ensure_object(dict)
    configure_logging(verbose)
    if ctx.obj.get('config') is None:
        try:
            if config_file:
                ctx.obj['config'] = StackParser().parse(config_file)
            elif os.path.exists('chatstack.yml'):
                ctx.obj['config'] = StackParser().parse('chatstack.yml')
            else:
                ctx.obj['config'] = default_stack()
        except ChatstackError as e:
            click.secho(f"Error: {e}", fg="red", err=True)
            ctx.exit(1)
    if ctx.invoked_subcommand is None:
        ctx.invoke(deploy)


@cli.command()
@click.pass_context
def deploy(ctx):
    """Check the host, fetch the repository and start every service."""
    config = ctx.obj['config']
    try:
        _get(ctx, 'preflight', lambda: Preflight(config)).run()
        _get(ctx, 'repository', lambda: RepositoryManager(config)).fetch()
        orchestrator = _orchestrator(ctx)
        orchestrator.ensure_network()
        orchestrator.ensure_volumes()
        _get(ctx, 'environment', lambda: EnvironmentManager(config, _get(ctx, 'prompt', ClickPrompt))).ensure_env_file()
        report = orchestrator.bring_up()
    except ChatstackError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        ctx.exit(1)
    _finish(ctx, report)


@cli.command()
@click.pass_context
def up(ctx):
    """Start services that are not running."""
    orchestrator = _orchestrator(ctx)
    try:
        orchestrator.ensure_network()
        orchestrator.ensure_volumes()
        report = orchestrator.reconcile_up()
    except ChatstackError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        ctx.exit(1)
    _finish(ctx, report)


@cli.command()
@click.pass_context
def down(ctx):
    """Stop all services in reverse order."""
    _finish(ctx, _orchestrator(ctx).tear_down())


@cli.command()
@click.pass_context
def restart(ctx):
    """Restart all services in place."""
    _finish(ctx, _orchestrator(ctx).restart_in_place())


@cli.command('update-env')
@click.pass_context
def update_env(ctx):
    """Edit the .env file and recreate services with the new values."""
    config = ctx.obj['config']
    try:
        _get(ctx, 'environment', lambda: EnvironmentManager(config, _get(ctx, 'prompt', ClickPrompt))).update()
        report = _orchestrator(ctx).bring_up()
    except ChatstackError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        ctx.exit(1)
    _finish(ctx, report)


@cli.command()
@click.pass_context
def reset(ctx):
    """Remove every container, volume, network and image of the stack."""
    config = ctx.obj['config']
    repository = _get(ctx, 'repository', lambda: RepositoryManager(config))
    try:
        report: ResetReport = _orchestrator(ctx).reset(repository=repository)
    except ResetConfirmationDeclined:
        click.echo("Reset cancelled.")
        return
    _echo_report(report)
    if report.clean:
        click.secho("Nothing left behind.", fg="green")
    else:
        for kind, items in report.remaining.items():
            if items:
                click.secho(f"  remaining {kind}: {', '.join(items)}", fg="yellow")
    if not report.ok:
        ctx.exit(1)


@cli.command()
@click.pass_context
def status(ctx):
    """List service group status"""
    states = _orchestrator(ctx).status()
    click.echo(f"{'GROUP':15} {'STATE':10}")
    click.echo("-" * 26)
    for name, state in states.items():
        click.echo(f"{name:15} {state.value:10}")


@cli.command('help')
@click.pass_context
def help_(ctx):
    """Show this message."""
    click.echo(ctx.parent.get_help())


cli.add_command(up, name='start')
cli.add_command(down, name='stop')


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})

if __name__ == '__main__':
    main()
