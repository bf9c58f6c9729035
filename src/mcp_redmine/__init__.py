import asyncio
import os
import sys

import click
from dotenv import load_dotenv

__version__ = "0.1.0"

from .exceptions import MCPRedmineError
from .logging_config import log_operation, setup_logger

logger = setup_logger()


def _configure_logging(verbose: int, log_to_file: bool, log_dir: str | None) -> None:
    logging_level = None
    if verbose == 1:
        logging_level = "INFO"
    elif verbose >= 2:
        logging_level = "DEBUG"

    setup_logger(
        name="mcp-redmine",
        level=logging_level,
        log_to_file=log_to_file,
        log_dir=log_dir,
    )


@click.group(invoke_without_command=True)
@click.version_option(__version__, prog_name="mcp-redmine")
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="Increase verbosity (can be used multiple times)",
)
@click.option(
    "--env-file", type=click.Path(exists=True, dir_okay=False), help="Path to .env file"
)
@click.option(
    "--log-dir",
    help="Directory to store log files",
)
@click.option(
    "--log-to-file/--no-log-to-file",
    default=False,
    help="Enable/disable file logging",
)
@click.option("--redmine-url", help="Redmine URL (e.g., https://redmine.example.com)")
@click.option("--redmine-api-key", help="Redmine API key")
@click.option(
    "--redmine-ssl-verify/--no-redmine-ssl-verify",
    default=None,
    help="Verify SSL certificates for Redmine (default: verify)",
)
@click.pass_context
def main(
    ctx: click.Context,
    verbose: int,
    env_file: str | None,
    log_dir: str | None,
    log_to_file: bool,
    redmine_url: str | None,
    redmine_api_key: str | None,
    redmine_ssl_verify: bool | None,
) -> None:
    """MCP Redmine - name resolution and workflow validation for Redmine

    Runs the MCP server when no command is given.
    """
    _configure_logging(verbose, log_to_file, log_dir)

    if env_file:
        logger.info(f"Loading environment from file: {env_file}")
        load_dotenv(env_file)
    else:
        logger.debug("Attempting to load environment from default .env file")
        load_dotenv()

    # Command line arguments take precedence over the environment
    if redmine_url:
        os.environ["REDMINE_URL"] = redmine_url
    if redmine_api_key:
        os.environ["REDMINE_API_KEY"] = redmine_api_key
    if redmine_ssl_verify is not None:
        os.environ["REDMINE_SSL_VERIFY"] = str(redmine_ssl_verify).lower()
    if log_dir:
        os.environ["LOG_DIR"] = log_dir

    if ctx.invoked_subcommand is None:
        ctx.invoke(serve)


@main.command()
@click.option(
    "--transport",
    type=click.Choice(["stdio", "sse", "streamable-http"]),
    default="stdio",
    help="Transport type",
)
@click.option("--host", default="0.0.0.0", help="Host to bind for HTTP transports")
@click.option("--port", default=8000, help="Port to listen on for HTTP transports")
@click.option(
    "--field-rules-file",
    type=click.Path(dir_okay=False),
    help="Custom field rules JSON file",
)
@click.option(
    "--workflow-rules-file",
    type=click.Path(dir_okay=False),
    help="Workflow rules JSON file",
)
def serve(
    transport: str = "stdio",
    host: str = "0.0.0.0",
    port: int = 8000,
    field_rules_file: str | None = None,
    workflow_rules_file: str | None = None,
) -> None:
    """Run the MCP server."""
    if field_rules_file:
        os.environ["REDMINE_FIELD_RULES_FILE"] = field_rules_file
    if workflow_rules_file:
        os.environ["REDMINE_WORKFLOW_RULES_FILE"] = workflow_rules_file

    from .servers.main import main_mcp

    with log_operation(logger, "application_startup", app_version=__version__):
        logger.info(f"Starting MCP Redmine v{__version__} with {transport} transport")

    if transport == "stdio":
        asyncio.run(main_mcp.run_async(transport="stdio"))
    else:
        asyncio.run(main_mcp.run_async(transport=transport, host=host, port=port))


@main.command("generate-rules")
@click.option(
    "--fields-out",
    type=click.Path(dir_okay=False),
    help="Write custom field rules to this file (requires an administrator API key)",
)
@click.option(
    "--workflow-out",
    type=click.Path(dir_okay=False),
    help="Write workflow rules inferred from issue history to this file",
)
@click.option(
    "--per-tracker",
    type=int,
    default=None,
    help="Issues inspected per tracker when inferring workflows (default: 50)",
)
@click.option(
    "--merge/--no-merge",
    default=True,
    help="Keep entries of an existing output file that were not regenerated",
)
def generate_rules(
    fields_out: str | None,
    workflow_out: str | None,
    per_tracker: int | None,
    merge: bool,
) -> None:
    """Generate rule files from a live Redmine instance."""
    from .redmine import RedmineConfig, RedmineFetcher
    from .redmine import rules as field_rules
    from .redmine import workflow

    if not fields_out and not workflow_out:
        raise click.UsageError("Give --fields-out and/or --workflow-out.")

    try:
        config = RedmineConfig.from_env()
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    if not config.is_auth_configured:
        raise click.ClickException("REDMINE_API_KEY is required to generate rules.")

    fetcher = RedmineFetcher(config=config)

    def progress(message: str) -> None:
        click.echo(message, err=True)

    try:
        if fields_out:
            with log_operation(logger, "generate_field_rules"):
                generated = field_rules.CustomFieldRules.generate(
                    fetcher.list_all_custom_fields()
                )
                curated = field_rules.CustomFieldRules.load(fields_out) if merge else None
                result = field_rules.merge(curated, generated)
                result.save(fields_out)
            click.echo(f"Wrote {len(result)} custom field rules to {fields_out}", err=True)

        if workflow_out:
            generated_workflow = workflow.generate_workflow_rules(
                fetcher,
                per_tracker=per_tracker or config.workflow_sample_size,
                progress=progress,
            )
            curated_workflow = workflow.WorkflowRules.load(workflow_out) if merge else None
            workflow_result = workflow.merge(curated_workflow, generated_workflow)
            workflow_result.save(workflow_out)
            click.echo(
                f"Wrote workflow rules for {len(workflow_result)} trackers to {workflow_out}",
                err=True,
            )
    except MCPRedmineError as e:
        raise click.ClickException(str(e)) from e


__all__ = ["main", "__version__", "setup_logger", "log_operation"]

if __name__ == "__main__":
    sys.exit(main())
