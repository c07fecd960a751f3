# cli.py
import logging
import os
import sys
import threading

import click

from nl_files_api.settings import get_settings

logger = logging.getLogger(__name__)


def _log_uncaught_exception(exc_type, exc_value, exc_traceback):
    """Log an uncaught error and exit; restarting is the supervisor's job."""
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return
    logger.critical("Uncaught exception, shutting down", exc_info=(exc_type, exc_value, exc_traceback))
    sys.exit(1)


def _log_uncaught_thread_exception(args: threading.ExceptHookArgs) -> None:
    """
    Same policy for background threads.

    `sys.exit` would only end the thread, so the process is ended with
    `os._exit` once the log is flushed. Errors raised inside request handlers
    never get here (they become 500 responses), and neither do exceptions in
    asyncio tasks, which uvicorn's event loop logs itself.
    """
    if issubclass(args.exc_type, SystemExit):
        return
    logger.critical(
        "Uncaught exception in thread %s, shutting down",
        args.thread.name if args.thread else "<unknown>",
        exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
    )
    logging.shutdown()
    os._exit(1)


@click.group()
def cli():
    """CLI commands for the files API"""
    pass


@cli.command()
def show_config():
    """Show current configuration"""
    settings = get_settings()

    click.echo("Current Configuration:")
    click.echo(f"  Deployment Mode: {settings.deployment_mode}")
    click.echo(f"  Storage Backend: {settings.storage_backend}")
    click.echo(f"  Uploads Directory: {settings.uploads_dir}")
    click.echo(f"  S3 Bucket: {settings.s3_bucket_name}")
    click.echo(f"  AWS Endpoint: {settings.aws_endpoint_url}")
    click.echo(f"  OpenAI Model: {settings.openai_model}")
    click.echo(f"  OpenAI API Key: {'set' if settings.openai_api_key else 'not set'}")
    click.echo(f"  Listening On: {settings.host}:{settings.port}")


@cli.command()
@click.option("--host", default=None, help="Interface to bind (defaults to HOST setting)")
@click.option("--port", default=None, type=int, help="Port to bind (defaults to PORT setting)")
@click.option("--reload", is_flag=True, help="Reload on code changes (development only)")
def serve(host, port, reload):
    """Run the API with uvicorn"""
    import uvicorn

    settings = get_settings()
    sys.excepthook = _log_uncaught_exception
    threading.excepthook = _log_uncaught_thread_exception

    host = host or settings.host
    port = port or settings.port
    logger.info(f"Starting API on {host}:{port} ({settings.deployment_mode})")
    uvicorn.run(
        "nl_files_api.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    cli()
