"""mavlink-connect CLI - drive the link controller from a terminal."""

from __future__ import annotations

import asyncio
import json

import click

from mavlink_connect.utils.logging import setup_logging


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--json-output", is_flag=True, help="Output in JSON format")
@click.pass_context
def cli(ctx: click.Context, debug: bool, json_output: bool) -> None:
    """mavlink-connect - MAVLink telemetry link controller."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["json_output"] = json_output
    setup_logging(level="DEBUG" if debug else "INFO", json_output=json_output)


@cli.command()
@click.pass_context
def scan(ctx: click.Context) -> None:
    """List serial devices (conventional paths if none are found)."""
    from mavlink_connect.config import LinkSettings
    from mavlink_connect.core.serial_config import SerialConfigResolver
    from mavlink_connect.transport import SimulatedTransport

    resolver = SerialConfigResolver(SimulatedTransport(), LinkSettings.from_env())
    devices = asyncio.run(resolver.scan_devices())

    if ctx.obj.get("json_output"):
        click.echo(json.dumps([d.model_dump() for d in devices], indent=2))
        return
    if resolver.used_fallback:
        click.echo("No serial devices found, offering conventional paths:")
    else:
        click.echo(f"Found {len(devices)} device(s):")
    selected = resolver.selected_device
    for dev in devices:
        marker = "*" if selected is not None and dev.id == selected.id else " "
        ids = f" [{dev.vendor_id}:{dev.product_id}]" if dev.vendor_id else ""
        click.echo(f" {marker}[{dev.id}] {dev.label}{ids}")


@cli.command()
@click.option("--mode", type=click.Choice(["tcp", "udp", "serial"]), default="tcp")
@click.option("--device", type=int, default=None, help="Serial device id from 'scan'")
@click.option("--baud", default=None, help="Serial baud rate")
@click.option("--duration", type=float, default=5.0, show_default=True, help="Seconds to stay connected")
@click.option("--command", "commands", multiple=True, help="Guided command to send once connected (repeatable)")
@click.pass_context
def connect(
    ctx: click.Context,
    mode: str,
    device: int | None,
    baud: str | None,
    duration: float,
    commands: tuple[str, ...],
) -> None:
    """Connect to the simulated vehicle and stream telemetry."""
    from mavlink_connect.exceptions import MavlinkConnectError

    try:
        final = asyncio.run(_run_session(ctx.obj.get("json_output", False), mode, device, baud, duration, commands))
    except MavlinkConnectError as exc:
        raise click.ClickException(str(exc)) from exc
    if final.error:
        raise click.ClickException(final.error)


async def _run_session(
    json_output: bool,
    mode: str,
    device: int | None,
    baud: str | None,
    duration: float,
    commands: tuple[str, ...],
):
    from mavlink_connect.config import LinkSettings
    from mavlink_connect.core.link import LinkStateMachine
    from mavlink_connect.models.command import CommandKind
    from mavlink_connect.models.link import LinkMode, LinkStatus
    from mavlink_connect.models.telemetry import LinkSnapshot
    from mavlink_connect.transport import SimulatedTransport

    last_sample = None

    def _echo(snapshot: LinkSnapshot) -> None:
        nonlocal last_sample
        if snapshot.sample is None or snapshot.sample is last_sample:
            return
        last_sample = snapshot.sample
        if json_output:
            click.echo(json.dumps(snapshot.sample.to_dict()))
        elif snapshot.sample.is_empty:
            click.echo("Connected - waiting for data...")
        else:
            click.echo(json.dumps(snapshot.sample.to_dict(), indent=2))

    async with LinkStateMachine(SimulatedTransport(), LinkSettings.from_env()) as link:
        link_mode = LinkMode(mode)
        link.select_mode(link_mode)
        if link_mode == LinkMode.SERIAL:
            await link.scan_devices()
            link.resolve_serial(device, baud)

        unsubscribe = link.subscribe(_echo)
        state = await link.connect()
        if state.status != LinkStatus.CONNECTED:
            unsubscribe()
            return state
        click.echo(f"Connected over {link_mode.value.upper()}")

        for name in commands:
            result = await link.send_command(CommandKind.GUIDED, name)
            status = result.data if result.success else f"failed: {result.error}"
            click.echo(f"{name.upper()}: {status}")

        await asyncio.sleep(duration)
        unsubscribe()
        final = link.state
        await link.disconnect()
        click.echo("Disconnected")
        return final


@cli.command("hex")
@click.argument("text")
def hex_decode(text: str) -> None:
    """Validate and normalize hex input, e.g. 'FE 09 00'."""
    from mavlink_connect.exceptions import MalformedInputError
    from mavlink_connect.mavlink.framing import decode_hex, format_hex

    try:
        data = decode_hex(text)
    except MalformedInputError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"{len(data)} byte(s): {format_hex(data)}")


@cli.command()
@click.option("--sequence", type=click.IntRange(0, 255), default=0)
@click.option("--system-id", type=click.IntRange(0, 255), default=255)
@click.option("--component-id", type=click.IntRange(0, 255), default=190)
@click.pass_context
def heartbeat(ctx: click.Context, sequence: int, system_id: int, component_id: int) -> None:
    """Print a MAVLink v1 HEARTBEAT frame."""
    from mavlink_connect.mavlink.framing import build_heartbeat_frame, format_hex

    frame = build_heartbeat_frame(sequence=sequence, system_id=system_id, component_id=component_id)
    if ctx.obj.get("json_output"):
        click.echo(json.dumps({"length": len(frame), "frame": list(frame)}))
    else:
        click.echo(format_hex(frame))


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
