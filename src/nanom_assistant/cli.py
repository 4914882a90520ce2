"""CLI entry point for nanom-assistant."""

import asyncio
import logging

import click
import uvicorn

from .assistant import Assistant
from .core import Session
from .invoker import InvocationError, ModelInvoker


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log model selection and sync details.")
def main(verbose: bool):
    """Conversational assistant with resilient model fallback."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.option("--port", default=8080, help="Port to serve on.")
@click.option("--host", default="127.0.0.1", help="Host to bind to.")
def serve(port: int, host: str):
    """Start the web API."""
    click.echo(f"Starting nanom-assistant on http://{host}:{port}")
    uvicorn.run("nanom_assistant.server:app", host=host, port=port, reload=False)


@main.command()
@click.argument("prompt")
@click.option("--raw", is_flag=True, help="Print the unparsed model output.")
def ask(prompt: str, raw: bool):
    """Send one prompt as a new guest chat and print the reply."""

    async def run():
        assistant = Assistant.from_config()
        try:
            return await assistant.respond(Session(), prompt)
        finally:
            await assistant.aclose()

    outcome, reply = asyncio.run(run())
    if not outcome.ok:
        raise click.ClickException(f"Unable to access any models. Last error: {outcome.last_error_message}")

    click.echo(outcome.text if raw else reply.display_text)
    click.echo(f"[{outcome.used_candidate.model_name} {outcome.used_candidate.api_version}]", err=True)


@main.command()
def models():
    """List generation-capable models for the configured API key."""

    async def run():
        invoker = ModelInvoker()
        try:
            return await invoker.list_models()
        finally:
            await invoker.aclose()

    try:
        names = asyncio.run(run())
    except InvocationError as e:
        raise click.ClickException(e.message)
    for name in names:
        click.echo(name)
