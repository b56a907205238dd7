"""Command-line interface for inspecting and editing hub protocol payloads."""

from __future__ import annotations

import json
import logging
import sys

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from hubcodec.proto import CodecError, FrameInfo, pack, scan, unpack
from hubcodec.text import from_text, to_text


def _read_payload(input_file: str, hex_input: bool) -> bytes:
    with open(input_file, "rb") as f:
        data = f.read()

    if not hex_input:
        return data

    try:
        return bytes.fromhex(data.decode("ascii"))
    except ValueError as e:
        print(f"Invalid hex input: {e}")
        sys.exit(1)


def _write_payload(output_file: str | None, data: bytes, hex_output: bool) -> None:
    if hex_output:
        data = (data.hex() + "\n").encode("ascii")

    if output_file is None:
        click.get_binary_stream("stdout").write(data)
    else:
        with open(output_file, "wb") as f:
            f.write(data)


@click.group()
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Hub protocol MessagePack codec."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Binary payload file")
@click.option("--output", "-o", "output_file", default=None, help="Output file (default stdout)")
@click.option("--hex", "hex_input", is_flag=True, help="Input file holds hex text")
@click.option("--indent", type=int, default=None, help="Indent nested values by N spaces")
def decode(input_file: str, output_file: str | None, hex_input: bool, indent: int | None) -> None:
    """Decode a framed payload to editable text."""
    data = _read_payload(input_file, hex_input)

    try:
        text = to_text(unpack(data), indent=indent)
    except CodecError as e:
        print(f"Decode failed: {e}")
        sys.exit(1)

    if output_file is None:
        click.echo(text)
    else:
        with open(output_file, "w", encoding="utf-8") as f:
            f.write(text + "\n")


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Text file of records")
@click.option("--output", "-o", "output_file", default=None, help="Output file (default stdout)")
@click.option("--hex", "hex_output", is_flag=True, help="Write hex text instead of raw bytes")
def encode(input_file: str, output_file: str | None, hex_output: bool) -> None:
    """Encode edited text back to a framed payload."""
    try:
        with open(input_file, encoding="utf-8") as f:
            text = f.read()
        data = pack(from_text(text))
    except (CodecError, UnicodeDecodeError) as e:
        print(f"Encode failed: {e}")
        sys.exit(1)

    _write_payload(output_file, data, hex_output)


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Binary payload file")
@click.option("--hex", "hex_input", is_flag=True, help="Input file holds hex text")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def info(input_file: str, hex_input: bool, output_json: bool) -> None:
    """Display the frames of a payload."""
    data = _read_payload(input_file, hex_input)

    try:
        frames = scan(data)
    except CodecError as e:
        print(f"Decode failed: {e}")
        sys.exit(1)

    if output_json:
        print(json.dumps([frame.to_dict() for frame in frames], indent=2))
    else:
        _output_plain(frames, len(data))


def _output_plain(frames: list[FrameInfo], total_size: int) -> None:
    """Output frame info using rich text formatting."""
    console = Console()

    console.print(f"[bold cyan]Payload[/bold cyan] {total_size} bytes, {len(frames)} frames")

    table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
    table.add_column("#", style="dim", justify="right")
    table.add_column("Offset", style="yellow", justify="right")
    table.add_column("Size", style="yellow", justify="right")
    table.add_column("Shape", style="white")
    table.add_column("Fields", style="dim", justify="right")
    table.add_column("Invocation", style="green")
    table.add_column("Target", style="green")

    for frame in frames:
        table.add_row(
            str(frame.index),
            str(frame.offset),
            f"{frame.prefix_size}+{frame.body_size}",
            frame.shape.value,
            str(frame.field_count),
            frame.invocation_id or "",
            frame.target or "",
        )

    console.print(table)


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
