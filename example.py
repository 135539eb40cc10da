"""
Example usage of pymixingstation library.

Connects to Mixing Station on this machine, watches the mute of channel 1 and
toggles it once.
"""

import asyncio
import logging

from pymixingstation import LoggingListener, MixingStation


async def main():
    logging.basicConfig(level=logging.INFO)

    mixer = MixingStation("localhost", 8080)
    mixer.register_listener(LoggingListener())
    await mixer.async_connect()
    await asyncio.sleep(1)

    mixer.feedback.add_observer("example", "ch.0.mix.on")
    await mixer.toggle_value("ch.0.mix.on")
    await asyncio.sleep(1)
    print(f"ch.0.mix.on is now {mixer.feedback.get_value('ch.0.mix.on')}")

    mixer.feedback.remove_observer("example", "ch.0.mix.on")
    await mixer.async_close()


if __name__ == "__main__":
    asyncio.run(main())
