"""
Tamino CLI Main Entry Point

Command-line interface for Tamino client operations.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from tamino_client import TaminoClient
from tamino_client.config import DEFINE_MODES, ClientConfig
from tamino_client.exceptions import (
    TaminoError,
    TaminoProtocolError,
    TaminoServerMessageError,
    TaminoTransportError,
    TaminoValidationError,
    TaminoXMLError,
)
from tamino_client.models import Outcome
from tamino_cli.config import CLIConfig, create_sample_config, password_from_env
from tamino_cli.output import FORMATS, OutputFormatter, messages_lines, outcome_to_dict, print_error


# Global state for the CLI session
class CLIState:
    config: Optional[CLIConfig] = None
    formatter: Optional[OutputFormatter] = None


state = CLIState()


# =============================================================================
# Main CLI Group
# =============================================================================

@click.group()
@click.option("--config", "-c", type=click.Path(exists=True), help="Config file path")
@click.option("--profile", "-p", default="default", help="Config profile to use")
@click.option("--host", "-h", help="Tamino web server hostname")
@click.option("--port", type=int, help="Tamino web server port")
@click.option("--database", "-d", help="Database name")
@click.option("--username", "-u", help="User name")
@click.option("--password", "-P", help="Password (or use TAMINO_PASSWORD env)")
@click.option("--collection", help="Collection name")
@click.option("--encoding", "-e", help="Request character set")
@click.option("--method", "-m", type=click.Choice(["GET", "POST"]), help="HTTP method for commands")
@click.option("--timeout", type=float, help="Seconds to wait for each response")
@click.option("--format", "-f", type=click.Choice(FORMATS), default="table", help="Output format")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.version_option(version="1.0.0")
@click.pass_context
def cli(ctx, config, profile, host, port, database, username, password, collection,
        encoding, method, timeout, format, quiet, debug):
    """
    Tamino CLI - XML Server Operations

    Define schemas, store, query and delete documents on a Tamino
    XML Server through its HTTP interface.

    \b
    Configuration:
      Use a config file at ~/.tamino/config.yaml or specify options on command line.
      Run 'tamino config init' to create a sample config file.

    \b
    Examples:
      tamino --host localhost --database welcome_4_4_1 schema define person.tsd
      tamino -c config.yaml --collection people doc query '/person[firstName="Jo"]'
      tamino --profile production doc store people.xml --transaction
    """
    if debug:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    state.formatter = OutputFormatter(format=format, quiet=quiet)

    if config:
        loaded_config = CLIConfig.from_file(Path(config), profile)
    else:
        loaded_config = CLIConfig.find_and_load(profile)
    state.config = loaded_config

    # CLI options override config file
    settings = loaded_config.to_settings() if loaded_config else {}

    overrides = {
        "host": host,
        "port": port,
        "database": database,
        "timeout": timeout,
        "username": username,
        "password": password,
        "collection": collection,
        "encoding": encoding,
        "http_method": method,
    }
    for key, value in overrides.items():
        if value is not None:
            settings[key] = value

    if not settings.get("password"):
        settings["password"] = password_from_env()

    ctx.ensure_object(dict)
    ctx.obj.update(settings)


def get_client(ctx) -> TaminoClient:
    """
    Create a Tamino client from the effective settings.

    Args:
        ctx: Click context

    Returns:
        Configured client (no request sent yet)
    """
    settings = ctx.obj

    if not settings.get("host"):
        print_error("No server host specified. Use --host or config file.")
        sys.exit(1)

    if not settings.get("database"):
        print_error("No database specified. Use --database or config file.")
        sys.exit(1)

    try:
        config = ClientConfig(
            host=settings["host"],
            database=settings["database"],
            port=settings.get("port") or 80,
            username=settings.get("username") or "",
            password=settings.get("password") or "",
            collection=settings.get("collection") or "",
            encoding=settings.get("encoding") or "UTF-8",
            http_method=settings.get("http_method") or "GET",
            media_type=settings.get("media_type") or "",
            isolation_level=settings.get("isolation_level") or "",
            lock_mode=settings.get("lock_mode") or "",
            lock_wait=settings.get("lock_wait") or "",
            scheme=settings.get("scheme") or "http",
            timeout=settings.get("timeout"),
        )
    except TaminoValidationError as e:
        print_error(f"Invalid configuration: {e}")
        sys.exit(1)

    return TaminoClient.from_config(config)


def report(outcome: Outcome, success_message: str, raw_xml: str = None) -> None:
    """
    Print a command outcome, exiting with status 1 on failure.

    Args:
        outcome: Command outcome
        success_message: Message shown on success
        raw_xml: XML to show for --format xml
    """
    try:
        outcome.raise_for_status()
    except TaminoTransportError as e:
        print_error(f"Connection failed: {e}")
        sys.exit(1)
    except TaminoServerMessageError as e:
        print_error(f"Command failed: {e}")
        for line in messages_lines(outcome):
            print_error(line)
        sys.exit(1)
    except TaminoProtocolError as e:
        print_error(f"Command failed: {e}")
        sys.exit(1)

    if not state.formatter.is_table:
        state.formatter.output(outcome, raw_xml=raw_xml)
    state.formatter.success(success_message)


def read_payload(path: str, encoding: str) -> str:
    """Read a document or schema file as text."""
    return Path(path).read_text(encoding=encoding or "utf-8")


# =============================================================================
# Config Commands
# =============================================================================

@cli.group()
def config():
    """Configuration management commands."""
    pass


@config.command("init")
@click.option("--path", "-p", type=click.Path(), default="~/.tamino/config.yaml", help="Config file path")
def config_init(path):
    """Create sample configuration file."""
    path = Path(path).expanduser()

    path.parent.mkdir(parents=True, exist_ok=True)

    if path.exists():
        if not click.confirm(f"{path} already exists. Overwrite?"):
            return

    path.write_text(create_sample_config())

    state.formatter.success(f"Created config file: {path}")
    state.formatter.info("Edit the file to configure your Tamino connection settings.")


@config.command("show")
@click.pass_context
def config_show(ctx):
    """Show current configuration."""
    info = {
        "Host": ctx.obj.get("host") or "(not set)",
        "Port": ctx.obj.get("port") or 80,
        "Database": ctx.obj.get("database") or "(not set)",
        "Username": ctx.obj.get("username") or "(not set)",
        "Collection": ctx.obj.get("collection") or "(not set)",
        "Encoding": ctx.obj.get("encoding") or "UTF-8",
        "Method": ctx.obj.get("http_method") or "GET",
        "Timeout": ctx.obj.get("timeout") or "(none)",
    }
    state.formatter.output(info)


# =============================================================================
# Schema Commands
# =============================================================================

@cli.group()
def schema():
    """Schema management commands."""
    pass


@schema.command("define")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--mode", type=click.Choice([m for m in DEFINE_MODES if m]), help="Define mode")
@click.pass_context
def schema_define(ctx, file, mode):
    """
    Define a schema.

    FILE: Schema document to define.
    """
    client = get_client(ctx)
    try:
        if mode:
            client.set_define_mode(mode)
        outcome = client.define(read_payload(file, client.config.encoding))
        report(outcome, "Schema created successfully.", raw_xml=_body_text(outcome))
    except TaminoValidationError as e:
        print_error(f"Invalid input: {e}")
        sys.exit(1)
    finally:
        client.close()


@schema.command("undefine")
@click.argument("name")
@click.option("--confirm", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
def schema_undefine(ctx, name, confirm):
    """
    Undefine a schema.

    NAME: Schema or collection/doctype path to undefine.
    """
    if not confirm:
        if not click.confirm(f"Are you sure you want to undefine {name}?"):
            return

    client = get_client(ctx)
    try:
        outcome = client.undefine(name)
        report(outcome, "Schema deleted successfully.", raw_xml=_body_text(outcome))
    finally:
        client.close()


# =============================================================================
# Document Commands
# =============================================================================

@cli.group()
def doc():
    """Document commands."""
    pass


@doc.command("store")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--transaction", "-t", is_flag=True, help="Store inside a session and commit")
@click.pass_context
def doc_store(ctx, file, transaction):
    """
    Store documents in the collection.

    FILE: XML document to store.
    """
    client = get_client(ctx)
    try:
        data = read_payload(file, client.config.encoding)

        if not transaction:
            outcome = client.process(data)
            report(outcome, "Document stored successfully.", raw_xml=_body_text(outcome))
            return

        report(client.start_session(), "Session started.")
        outcome = client.process(data)
        if outcome:
            report(client.commit(), "Transaction committed.")
        else:
            rollback = client.rollback()
            if not rollback:
                print_error(f"Rollback failed: {rollback.error_detail}")
        report(outcome, "Document stored successfully.", raw_xml=_body_text(outcome))
    except TaminoError as e:
        print_error(f"Document creation failed: {e}")
        sys.exit(1)
    finally:
        client.close()


@doc.command("delete")
@click.argument("query")
@click.option("--confirm", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
def doc_delete(ctx, query, confirm):
    """
    Delete documents.

    QUERY: XQL query selecting the documents to delete.
    """
    if not confirm:
        if not click.confirm(f"Are you sure you want to delete {query}?"):
            return

    client = get_client(ctx)
    try:
        outcome = client.delete(query)
        report(outcome, "Document deleted.", raw_xml=_body_text(outcome))
    finally:
        client.close()


@doc.command("query")
@click.argument("query")
@click.option("--xquery", "-x", is_flag=True, help="Treat QUERY as XQuery instead of XQL")
@click.option("--cursor", is_flag=True, help="Page through results with a cursor")
@click.option("--position", type=int, default=1, help="First result to fetch (with --cursor)")
@click.option("--quantity", type=int, default=10, help="Results to fetch (with --cursor)")
@click.pass_context
def doc_query(ctx, query, xquery, cursor, position, quantity):
    """
    Query documents.

    QUERY: XQL (default) or XQuery expression.
    """
    client = get_client(ctx)
    try:
        run = client.xquery if xquery else client.query

        if cursor:
            client.open_cursor("yes", "no")

        outcome = run(query)
        handle = client.cursor_handle

        if cursor and outcome and handle:
            fetched = client.fetch_cursor(handle, position, quantity)
            result_xml = fetched.response.result_xml() if fetched else None
            closed = client.close_cursor(handle)
            if not closed:
                print_error(f"Closing cursor {handle} failed: {closed.error_detail}")
            outcome = fetched
        else:
            result_xml = outcome.response.result_xml() if outcome else None

        _show_result(outcome, result_xml)
    except TaminoValidationError as e:
        print_error(f"Invalid input: {e}")
        sys.exit(1)
    finally:
        client.close()


@cli.command("get")
@click.argument("path")
@click.pass_context
def get_document(ctx, path):
    """
    Fetch a document by URL path.

    PATH: Document path inside the collection, e.g. person/@1
    """
    client = get_client(ctx)
    try:
        outcome = client.plain_url_addressing(path)
        report(outcome, f"Fetched {path}", raw_xml=_body_text(outcome))
        if state.formatter.is_table:
            try:
                print(outcome.response.document_xml())
            except TaminoXMLError:
                print(_body_text(outcome) or "")
    finally:
        client.close()


# =============================================================================
# Server Commands
# =============================================================================

@cli.command()
@click.argument("call")
@click.pass_context
def admin(ctx, call):
    """
    Run an administration function.

    CALL: Function call, e.g. ino:RecreateIndex("people","person")
    """
    client = get_client(ctx)
    try:
        outcome = client.admin(call)
        report(outcome, "Admin call completed.", raw_xml=_body_text(outcome))
    finally:
        client.close()


@cli.command()
@click.argument("name")
@click.pass_context
def diagnose(ctx, name):
    """
    Run a diagnostic function.

    NAME: Diagnostic name, e.g. ping or version
    """
    client = get_client(ctx)
    try:
        outcome = client.diagnose(name)
        report(outcome, "Diagnose completed.", raw_xml=_body_text(outcome))
        if state.formatter.is_table:
            print(_body_text(outcome) or "")
    finally:
        client.close()


# =============================================================================
# Helpers
# =============================================================================

def _body_text(outcome: Outcome) -> Optional[str]:
    if outcome.response is None or not outcome.response.body:
        return None
    return outcome.response.body.decode("utf-8", errors="replace")


def _show_result(outcome: Outcome, result_xml: Optional[str]) -> None:
    """Print query results in the selected format."""
    if not outcome:
        report(outcome, "")
        return

    if state.formatter.format == "json":
        data = outcome_to_dict(outcome)
        data["result"] = result_xml
        state.formatter.output(data)
    elif state.formatter.format == "xml":
        state.formatter.output(None, raw_xml=_body_text(outcome))
    else:
        print(result_xml or "No results")


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
