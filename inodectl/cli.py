"""Typer CLI entrypoint."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any

import typer

from inodectl.core.decoder import Decoder, parse_hex
from inodectl.core.errors import InodeError
from inodectl.core.model import AdvertisingReport, ManufacturerSpecificData

app = typer.Typer(help="Decode iNode BLE manufacturer specific data and GSM batches")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


def _build_decoder() -> Decoder:
    return Decoder()


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return value.hex()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _format_value(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return value.hex()
    if isinstance(value, dict):
        return ", ".join(f"{k}={_format_value(v)}" for k, v in value.items())
    return str(value)


def _echo_msd(msd: ManufacturerSpecificData, indent: str = "") -> None:
    for key, value in msd.as_dict().items():
        typer.echo(f"{indent}{key}: {_format_value(value)}")


def _echo_report(report: AdvertisingReport) -> None:
    typer.echo(f"{report.address} {report.local_name or '<no-name>'} rssi={report.rssi}")
    if report.msd is not None:
        _echo_msd(report.msd, indent="  ")


@app.command("models")
def list_models() -> None:
    """List supported device models and the transports that carry them."""
    try:
        decoder = _build_decoder()
        for info in decoder.list_models():
            typer.echo(f"0x{info.model:02X} {info.model.name}: {info.label} [{', '.join(info.transports)}]")
    except InodeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("decode")
def decode(
    payload: str = typer.Argument(..., help="MSD payload as hex, starting at the company identifier"),
    as_json: bool = typer.Option(False, "--json", help="Print the record as JSON"),
) -> None:
    """Decode one manufacturer specific data payload."""
    try:
        decoder = _build_decoder()
        msd = decoder.decode_msd(parse_hex(payload))
        if as_json:
            typer.echo(json.dumps(msd.as_dict(), default=_json_default, ensure_ascii=False))
            return
        _echo_msd(msd)
    except InodeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("gsm")
def decode_gsm(
    payload: str = typer.Argument(..., help="GSM batch as hex"),
    gsm_time: int | None = typer.Option(None, "--time", help="Batch reference time (seconds since epoch)"),
    as_json: bool = typer.Option(False, "--json", help="Print the reports as JSON"),
    show_skipped: bool = typer.Option(False, "--show-skipped", help="Also list records that were skipped"),
) -> None:
    """Decode every record of a GSM gateway batch."""
    try:
        decoder = _build_decoder()
        scan = decoder.scan_gsm_data(gsm_time, parse_hex(payload))
        if as_json:
            typer.echo(
                json.dumps(
                    [report.as_dict() for report in scan.reports],
                    default=_json_default,
                    ensure_ascii=False,
                )
            )
        elif not scan.reports:
            typer.echo("No decodable records found")
        else:
            for report in scan.reports:
                _echo_report(report)

        if show_skipped:
            for record in scan.skipped:
                detail = f": {record.error}" if record.error else ""
                typer.echo(
                    f"Skipped record at offset {record.offset} ({record.reason.value}){detail}",
                    err=True,
                )
        if scan.truncation is not None:
            typer.echo(f"Warning: {scan.truncation}", err=True)
    except InodeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
