"""CLI entry point for pdum_cloud."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from pdum.cloud.config import ClientConfig, load_named_config
from pdum.cloud.datastore import DatastoreClient, Key, Query
from pdum.cloud.pubsub import PubSubClient, ReceiveOptions
from pdum.cloud.storage import StorageClient
from pdum.cloud.types.exceptions import CloudError

app = typer.Typer(
    help="Async clients for Google Cloud Pub/Sub, Datastore and Storage",
    no_args_is_help=True,
)
pubsub_app = typer.Typer(help="Pub/Sub topics, subscriptions and messages", no_args_is_help=True)
storage_app = typer.Typer(help="Cloud Storage buckets and objects", no_args_is_help=True)
datastore_app = typer.Typer(help="Datastore entities", no_args_is_help=True)
app.add_typer(pubsub_app, name="pubsub")
app.add_typer(storage_app, name="storage")
app.add_typer(datastore_app, name="datastore")

console = Console()

ProjectOption = typer.Option(None, "--project", "-p", help="Project id (defaults to the credentials' project)")
ConfigOption = typer.Option(None, "--config", "-c", help="Named config under ~/.config/pdum_cloud")


@app.callback()
def _main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log requests to stderr")):
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )


def _config(config_name: Optional[str]) -> Optional[ClientConfig]:
    return load_named_config(config_name) if config_name else None


def _run(coro) -> None:
    """Run a command coroutine, turning library errors into a red message and exit 1."""
    try:
        asyncio.run(coro)
    except CloudError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user.[/yellow]")
        sys.exit(130)


def _split_gs(url: str) -> tuple[str, str]:
    if not url.startswith("gs://"):
        raise typer.BadParameter(f"expected gs://bucket/name, got {url!r}")
    bucket, _, name = url[len("gs://") :].partition("/")
    return bucket, name


@app.command("version")
def version():
    """Show the version of pdum_cloud."""
    from pdum.cloud import __version__

    console.print(f"pdum_cloud version: [bold green]{__version__}[/bold green]")


# -- pubsub ------------------------------------------------------------------


@pubsub_app.command("topics")
def pubsub_topics(project: Optional[str] = ProjectOption, config_name: Optional[str] = ConfigOption):
    """List the topics of a project."""

    async def run():
        async with await PubSubClient.connect(project, config=_config(config_name)) as client:
            async for topic in client.topics():
                console.print(topic.full_resource_name())

    _run(run())


@pubsub_app.command("subscriptions")
def pubsub_subscriptions(
    topic: Optional[str] = typer.Argument(None, help="Only list subscriptions of this topic"),
    project: Optional[str] = ProjectOption,
    config_name: Optional[str] = ConfigOption,
):
    """List subscriptions of a project or of one topic."""

    async def run():
        async with await PubSubClient.connect(project, config=_config(config_name)) as client:
            pager = client.topic_subscriptions(topic) if topic else client.subscriptions()
            async for subscription in pager:
                console.print(subscription.full_resource_name())

    _run(run())


@pubsub_app.command("publish")
def pubsub_publish(
    topic: str = typer.Argument(..., help="Topic id or full name"),
    message: str = typer.Argument(..., help="Message text"),
    attribute: Optional[List[str]] = typer.Option(None, "--attribute", "-a", help="KEY=VALUE attribute (repeatable)"),
    project: Optional[str] = ProjectOption,
    config_name: Optional[str] = ConfigOption,
):
    """Publish a text message to a topic."""
    attributes = {}
    for item in attribute or []:
        key, sep, value = item.partition("=")
        if not sep:
            raise typer.BadParameter(f"expected KEY=VALUE, got {item!r}")
        attributes[key] = value

    async def run():
        async with await PubSubClient.connect(project, config=_config(config_name)) as client:
            message_id = await client.publish(topic, message, attributes)
            console.print(f"[green]Published[/green] {message_id}")

    _run(run())


@pubsub_app.command("pull")
def pubsub_pull(
    subscription: str = typer.Argument(..., help="Subscription id or full name"),
    max_messages: int = typer.Option(10, "--max", "-m", help="Maximum number of messages"),
    ack: bool = typer.Option(False, "--ack", help="Acknowledge the pulled messages"),
    project: Optional[str] = ProjectOption,
    config_name: Optional[str] = ConfigOption,
):
    """Pull one batch of messages without waiting."""

    async def run():
        async with await PubSubClient.connect(project, config=_config(config_name)) as client:
            options = ReceiveOptions(return_immediately=True, max_messages=max_messages)
            messages = await client.pull(subscription, options)
            table = Table("ID", "Published", "Attributes", "Data")
            for message in messages:
                table.add_row(
                    message.id,
                    message.publish_time.isoformat() if message.publish_time else "",
                    ", ".join(f"{k}={v}" for k, v in message.attributes.items()),
                    message.data.decode("utf-8", errors="replace"),
                )
            console.print(table)
            if ack:
                await client.acknowledge(subscription, [m.ack_id for m in messages])

    _run(run())


# -- storage -----------------------------------------------------------------


@storage_app.command("buckets")
def storage_buckets(project: Optional[str] = ProjectOption, config_name: Optional[str] = ConfigOption):
    """List the buckets of a project."""

    async def run():
        async with await StorageClient.connect(project, config=_config(config_name)) as client:
            table = Table("Name", "Location", "Class")
            async for bucket in client.buckets():
                info = bucket.info
                table.add_row(bucket.name, info.location or "", info.storage_class or "")
            console.print(table)

    _run(run())


@storage_app.command("ls")
def storage_ls(
    bucket: str = typer.Argument(..., help="Bucket name"),
    prefix: Optional[str] = typer.Option(None, "--prefix", help="Only list names starting with this prefix"),
    project: Optional[str] = ProjectOption,
    config_name: Optional[str] = ConfigOption,
):
    """List the objects in a bucket."""

    async def run():
        async with await StorageClient.connect(project, config=_config(config_name)) as client:
            table = Table("Name", "Size", "Updated")
            async for obj in client.objects(bucket, prefix=prefix):
                updated = obj.info.updated.isoformat() if obj.info.updated else ""
                table.add_row(obj.name, str(obj.info.size), updated)
            console.print(table)

    _run(run())


@storage_app.command("cat")
def storage_cat(
    url: str = typer.Argument(..., help="gs://bucket/name"),
    project: Optional[str] = ProjectOption,
    config_name: Optional[str] = ConfigOption,
):
    """Print an object to stdout."""
    bucket, name = _split_gs(url)

    async def run():
        async with await StorageClient.connect(project, config=_config(config_name)) as client:
            sys.stdout.buffer.write(await client.download(bucket, name))
            sys.stdout.flush()

    _run(run())


@storage_app.command("cp")
def storage_cp(
    source: str = typer.Argument(..., help="Local path or gs://bucket/name"),
    destination: str = typer.Argument(..., help="Local path or gs://bucket/name"),
    content_type: str = typer.Option("application/octet-stream", "--content-type", help="Content type on upload"),
    project: Optional[str] = ProjectOption,
    config_name: Optional[str] = ConfigOption,
):
    """Copy a local file to a bucket, or an object to a local file."""
    upload = destination.startswith("gs://")
    if upload == source.startswith("gs://"):
        raise typer.BadParameter("exactly one of SOURCE and DESTINATION must be a gs:// URL")

    async def run():
        async with await StorageClient.connect(project, config=_config(config_name)) as client:
            if upload:
                bucket, name = _split_gs(destination)
                obj = await client.upload(
                    bucket, name or Path(source).name, Path(source).read_bytes(), content_type=content_type
                )
                console.print(f"[green]Uploaded[/green] gs://{obj.bucket}/{obj.name} ({obj.size} bytes)")
            else:
                bucket, name = _split_gs(source)
                data = await client.download(bucket, name)
                Path(destination).write_bytes(data)
                console.print(f"[green]Downloaded[/green] {len(data)} bytes to {destination}")

    _run(run())


# -- datastore ---------------------------------------------------------------


def _parse_id(value: str):
    return int(value) if value.isdigit() else value


def _entity_table(entities) -> Table:
    table = Table("Key", "Properties")
    for entity in entities:
        key = "/".join(f"{kind}:{id_}" for kind, id_ in entity.key.path)
        table.add_row(key, ", ".join(f"{k}={v!r}" for k, v in entity.properties.items()))
    return table


@datastore_app.command("get")
def datastore_get(
    kind: str = typer.Argument(..., help="Entity kind"),
    key_id: str = typer.Argument(..., help="Numeric id or name"),
    namespace: Optional[str] = typer.Option(None, "--namespace", "-n", help="Namespace"),
    project: Optional[str] = ProjectOption,
    config_name: Optional[str] = ConfigOption,
):
    """Look up one entity."""

    async def run():
        async with await DatastoreClient.connect(project, config=_config(config_name)) as client:
            entity = await client.get(Key(kind, _parse_id(key_id), namespace=namespace))
            if entity is None:
                console.print(f"[yellow]No entity {kind}:{key_id}[/yellow]")
                sys.exit(1)
            console.print(_entity_table([entity]))

    _run(run())


@datastore_app.command("query")
def datastore_query(
    kind: str = typer.Argument(..., help="Entity kind"),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help="Maximum number of entities"),
    namespace: Optional[str] = typer.Option(None, "--namespace", "-n", help="Namespace"),
    project: Optional[str] = ProjectOption,
    config_name: Optional[str] = ConfigOption,
):
    """List the entities of a kind."""

    async def run():
        async with await DatastoreClient.connect(project, config=_config(config_name)) as client:
            query = Query(kind, namespace=namespace)
            if limit is not None:
                query = query.with_limit(limit)
            console.print(_entity_table(await client.query(query).collect()))

    _run(run())


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
