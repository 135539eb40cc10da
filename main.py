"""
Main command-line interface for pymixingstation.

This script provides a CLI to interact with a mixer through the Mixing Station app.
"""

import argparse
import asyncio
import logging

from pymixingstation.errors import MixingStationError
from pymixingstation.listener import MixingStationListener
from pymixingstation.mixer import MixingStation


class _ConnectedWaiter(MixingStationListener):
    """Sets an event once the websocket is up."""

    def __init__(self):
        self.event = asyncio.Event()

    def connected(self):
        self.event.set()

    def connection_lost(self, reason: str):
        self.event.clear()


class _ValuePrinter(MixingStationListener):

    def connected(self):
        print("Connected")

    def connection_lost(self, reason: str):
        print(f"Connection lost: {reason}")

    def value_changed(self, path: str, value):
        print(f"{path} = {value}")


async def _open(hostname: str, port: int, timeout: float) -> MixingStation:
    print(f"Connecting to Mixing Station at {hostname}:{port}...")
    mixer = MixingStation(hostname, port, request_timeout=timeout)
    waiter = _ConnectedWaiter()
    mixer.register_listener(waiter)
    await mixer.async_connect()
    try:
        await asyncio.wait_for(waiter.event.wait(), timeout)
    except asyncio.TimeoutError:
        await mixer.async_close()
        raise MixingStationError(f"Could not connect to {hostname}:{port}") from None
    finally:
        mixer.unregister_listener(waiter)
    # Give the app a moment to push its state
    await asyncio.sleep(0.2)
    return mixer


async def show_state(mixer: MixingStation):
    state = mixer.app_state
    print(f"State: {state.state} ({state.top_state.value})")
    if state.message:
        print(f"Message: {state.message}")
    if state.progress is not None:
        print(f"Progress: {state.progress}")


async def show_mixers(mixer: MixingStation):
    consoles = await mixer.get_available_mixers()
    print("-" * 80)
    for console in consoles.consoles:
        print(f"{console.console_id:4d}  {console.label}")
        for model in console.model_enums:
            print(f"      model {model.id}: {model.name}")
    print("-" * 80)


async def show_paths(mixer: MixingStation):
    if not mixer.app_state.is_mixer_connected:
        print("Mixing Station is not connected to a mixer")
        return
    paths = await mixer.get_all_data_paths()
    for path in paths.value_paths():
        print(path)


async def show_value(mixer: MixingStation, path: str):
    value = await mixer.get_value(path)
    print(f"{path} = {value.value}")


async def set_value(mixer: MixingStation, path: str, value: str):
    try:
        number = float(value)
    except ValueError:
        print(f"Error: Invalid value '{value}', must be a number")
        return
    if number.is_integer():
        number = int(number)
    mixer.set_value(path, number)
    # Wait for the frame to be written
    await asyncio.sleep(0.5)
    print("Done")


async def toggle_value(mixer: MixingStation, path: str):
    new_value = await mixer.toggle_value(path)
    if new_value is None:
        print(f"Could not toggle {path}")
    else:
        await asyncio.sleep(0.5)
        print(f"{path} set to {new_value}")


async def watch(mixer: MixingStation, paths: list[str]):
    mixer.register_listener(_ValuePrinter())
    for path in paths:
        mixer.feedback.add_observer(f"cli-{path}", path)
    print("Watching, press Ctrl+C to stop")
    await asyncio.Event().wait()


async def run(args):
    mixer = await _open(args.host, args.port, args.timeout)
    try:
        if args.command == "state":
            await show_state(mixer)
        elif args.command == "mixers":
            await show_mixers(mixer)
        elif args.command == "paths":
            await show_paths(mixer)
        elif args.command == "get":
            await show_value(mixer, args.path)
        elif args.command == "set":
            await set_value(mixer, args.path, args.value)
        elif args.command == "toggle":
            await toggle_value(mixer, args.path)
        elif args.command == "watch":
            await watch(mixer, args.paths)
        elif args.command == "connect":
            mixer.connect_to_mixer(args.console_id, args.mixer_host)
            await asyncio.sleep(0.5)
        elif args.command == "offline":
            mixer.start_offline_mode(args.console_id, args.model_id)
            await asyncio.sleep(0.5)
    finally:
        await mixer.async_close()


def main():
    parser = argparse.ArgumentParser(description="Control a mixer through Mixing Station")
    parser.add_argument("--host", default="localhost", help="Mixing Station host (default: localhost)")
    parser.add_argument("--port", type=int, default=8080, help="Mixing Station REST port (default: 8080)")
    parser.add_argument("--timeout", type=float, default=10.0, help="Seconds to wait for responses (default: 10)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    subparsers.add_parser("state", help="Show the app state")
    subparsers.add_parser("mixers", help="List available mixer types")
    subparsers.add_parser("paths", help="List all parameter paths of the connected mixer")

    get_parser = subparsers.add_parser("get", help="Read a parameter")
    get_parser.add_argument("path", help="Parameter path, e.g. ch.0.mix.on")

    set_parser = subparsers.add_parser("set", help="Set a parameter")
    set_parser.add_argument("path", help="Parameter path")
    set_parser.add_argument("value", help="Numeric value")

    toggle_parser = subparsers.add_parser("toggle", help="Toggle a boolean or enumerated parameter")
    toggle_parser.add_argument("path", help="Parameter path")

    watch_parser = subparsers.add_parser("watch", help="Subscribe to parameters and print changes")
    watch_parser.add_argument("paths", nargs="+", help="Parameter paths")

    connect_parser = subparsers.add_parser("connect", help="Connect Mixing Station to a mixer")
    connect_parser.add_argument("console_id", type=int, help="Console id (see 'mixers')")
    connect_parser.add_argument("mixer_host", help="Mixer IP or hostname")

    offline_parser = subparsers.add_parser("offline", help="Start an offline session")
    offline_parser.add_argument("console_id", type=int, help="Console id (see 'mixers')")
    offline_parser.add_argument("model_id", type=int, help="Model id (see 'mixers')")

    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.WARNING)

    if args.command is None:
        parser.print_help()
        return
    try:
        asyncio.run(run(args))
    except MixingStationError as e:
        print(f"Error: {e}")
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
