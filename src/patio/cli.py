"""Command line front end: decode, encode and size records from a YAML layout.

Usage:
    patio decode layout.yaml record.bin
    patio encode layout.yaml record.json -o record.bin
    patio size layout.yaml [--record record.json]

Decoded records are printed as JSON. Byte strings have no JSON form, so
they are written as ``{"$bytes": "<hex>"}`` and read back the same way.
"""

from __future__ import annotations

import json
import logging
from typing import IO, Any

import click
import yaml

from patio._config import ConfigParseError, LayoutConfig, parse_layout_config
from patio._errors import OperationError, PatternError
from patio._pattern import Pattern
from patio._registry import Registry, RegistryBuilder, register_core_leaves
from patio._sync import decode, encode, encoded_size

logger = logging.getLogger(__name__)

BYTES_KEY = "$bytes"


def read_layout(stream: IO[str]) -> LayoutConfig:
    try:
        return parse_layout_config(yaml.safe_load(stream))
    except yaml.YAMLError as e:
        msg = f"layout is not valid YAML: {e}"
        raise click.ClickException(msg) from e
    except ConfigParseError as e:
        raise click.ClickException(str(e)) from e


def load_layout(stream: IO[str]) -> Pattern:
    """Parse a YAML layout and compile it with the core leaf catalogue."""
    config = read_layout(stream)
    try:
        return core_registry().load_pattern(config)
    except PatternError as e:
        raise click.ClickException(str(e)) from e


def core_registry() -> Registry:
    return register_core_leaves(RegistryBuilder()).build()


def to_json(value: Any) -> Any:
    """Make a decoded value JSON-serializable."""
    match value:
        case bytes() | bytearray():
            return {BYTES_KEY: bytes(value).hex()}
        case dict():
            return {str(k): to_json(v) for k, v in value.items()}
        case list() | tuple():
            return [to_json(v) for v in value]
        case _:
            return value


def from_json(value: Any) -> Any:
    """Inverse of to_json: restore byte strings."""
    match value:
        case {"$bytes": str(text)} if len(value) == 1:
            return bytes.fromhex(text)
        case dict():
            return {k: from_json(v) for k, v in value.items()}
        case list():
            return [from_json(v) for v in value]
        case _:
            return value


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log operation progress to stderr")
def main(verbose: bool) -> None:
    """Decode and encode binary records described by YAML layouts."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(levelname)s %(name)s: %(message)s",
        )


@main.command("decode")
@click.argument("layout", type=click.File("r"))
@click.argument("input", type=click.File("rb"))
@click.option(
    "--exact/--allow-trailing",
    default=True,
    help="Fail if input remains after the record (default: fail)",
)
def decode_cmd(layout: IO[str], input: IO[bytes], exact: bool) -> None:
    """Decode INPUT with LAYOUT and print the record as JSON."""
    pattern = load_layout(layout)
    data = input.read()
    logger.debug("decoding %d bytes", len(data))
    try:
        value = decode(pattern, data, exact=exact)
    except OperationError as e:
        raise click.ClickException(str(e)) from e
    click.echo(json.dumps(to_json(value), indent=2))


@main.command("encode")
@click.argument("layout", type=click.File("r"))
@click.argument("record", type=click.File("r"))
@click.option("-o", "--output", type=click.File("wb"), default="-", help="Output file")
def encode_cmd(layout: IO[str], record: IO[str], output: IO[bytes]) -> None:
    """Encode the JSON RECORD with LAYOUT."""
    pattern = load_layout(layout)
    try:
        value = from_json(json.load(record))
    except ValueError as e:
        msg = f"record is not valid: {e}"
        raise click.ClickException(msg) from e
    try:
        data = encode(pattern, value)
    except OperationError as e:
        raise click.ClickException(str(e)) from e
    output.write(data)


@main.command("size")
@click.argument("layout", type=click.File("r"))
@click.option(
    "--record",
    type=click.File("r"),
    default=None,
    help="JSON record whose encoded size to report",
)
def size_cmd(layout: IO[str], record: IO[str] | None) -> None:
    """Print the fixed size of LAYOUT, or "variable"."""
    config = read_layout(layout)
    registry = core_registry()
    try:
        pattern = registry.load_pattern(config)
        size = registry.layout_size(config)
    except PatternError as e:
        raise click.ClickException(str(e)) from e
    if record is not None:
        try:
            n = encoded_size(pattern, from_json(json.load(record)))
        except ValueError as e:
            msg = f"record is not valid: {e}"
            raise click.ClickException(msg) from e
        except OperationError as e:
            raise click.ClickException(str(e)) from e
        click.echo(n)
        return
    click.echo("variable" if size is None else size)


if __name__ == "__main__":
    main()
