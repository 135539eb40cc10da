"""Tests for pymixingstation/mixer.py: wire paths of the typed operations and toggling."""

import asyncio

import pytest

from conftest import wait_until
from pymixingstation.errors import MixingStationDisconnected, MixingStationResponseError, MixingStationTimeout
from pymixingstation.mixer import MixingStation
from pymixingstation.model import Value

ENUM_DEFINITION = {
    "value": {
        "type": "enum",
        "enums": [
            {"id": 0, "name": "Off"},
            {"id": 1, "name": "Pre"},
            {"id": 2, "name": "Post"},
        ],
    }
}


class TestCommands:
    @pytest.mark.asyncio
    async def test_set_value(self, mixer, session) -> None:
        assert mixer.set_value("ch.0.mix.lvl", 0.5)
        await wait_until(lambda: session.ws.sent_to("/console/data/set/ch.0.mix.lvl/val"))
        [message] = session.ws.sent_to("/console/data/set/ch.0.mix.lvl/val")
        assert message == {"path": "/console/data/set/ch.0.mix.lvl/val", "method": "POST", "body": {"value": 0.5}}

    @pytest.mark.asyncio
    async def test_subscribe_and_unsubscribe(self, mixer, session) -> None:
        assert mixer.subscribe("ch.0.mix.on")
        assert mixer.unsubscribe("ch.0.mix.on")
        await wait_until(lambda: session.ws.sent_to("/console/data/unsubscribe"))
        assert session.ws.sent_to("/console/data/subscribe")[0]["body"] == {"path": "ch.0.mix.on", "format": "val"}
        assert session.ws.sent_to("/console/data/unsubscribe")[0]["body"] == {"path": "ch.0.mix.on", "format": "val"}

    @pytest.mark.asyncio
    async def test_connect_to_mixer(self, mixer, session) -> None:
        assert mixer.connect_to_mixer(7, "192.168.1.20")
        await wait_until(lambda: session.ws.sent_to("/app/mixers/connect"))
        assert session.ws.sent_to("/app/mixers/connect")[0]["body"] == {"consoleId": 7, "ip": "192.168.1.20"}

    @pytest.mark.asyncio
    async def test_start_offline_mode(self, mixer, session) -> None:
        assert mixer.start_offline_mode(7, 3)
        await wait_until(lambda: session.ws.sent_to("/app/mixers/offline"))
        assert session.ws.sent_to("/app/mixers/offline")[0]["body"] == {"consoleId": 7, "modelId": 3}

    def test_commands_return_false_when_not_connected(self) -> None:
        mixer = MixingStation()
        assert mixer.set_value("ch.0.mix.lvl", 1) is False
        assert mixer.subscribe("ch.0.mix.lvl") is False
        assert mixer.connect_to_mixer(1, "10.0.0.1") is False
        assert mixer.start_offline_mode(1, 1) is False


class TestRequests:
    @pytest.mark.asyncio
    async def test_get_value_resolves_with_response_body(self, mixer, session) -> None:
        task = asyncio.create_task(mixer.get_value("eq.1.gain"))
        await wait_until(lambda: session.ws.sent_to("/console/data/get/eq.1.gain/val"))
        assert session.ws.sent_to("/console/data/get/eq.1.gain/val") == [
            {"path": "/console/data/get/eq.1.gain/val", "method": "GET", "body": None}
        ]

        session.ws.push({
            "path": "/console/data/get/eq.1.gain/val",
            "method": "GET",
            "body": {"value": 0.75, "format": "val"},
        })

        assert await asyncio.wait_for(task, 1.0) == Value(0.75, "val")

    @pytest.mark.asyncio
    async def test_get_value_definition(self, mixer, session) -> None:
        session.ws.auto_reply[("/console/data/definitions2/ch.0.send.0.tap", "GET")] = ENUM_DEFINITION
        definition = await mixer.get_value_definition("ch.0.send.0.tap")
        assert definition.type == "enum"
        assert [entry.name for entry in definition.enums] == ["Off", "Pre", "Post"]

    @pytest.mark.asyncio
    async def test_get_all_data_paths(self, mixer, session) -> None:
        session.ws.auto_reply[("/console/data/paths", "GET")] = {
            "child": {"ch": {"child": {"0": {"child": {"mix": {"val": ["on", "lvl"]}}}}}}
        }
        paths = await mixer.get_all_data_paths()
        assert paths.value_paths() == ["ch.0.mix.on", "ch.0.mix.lvl"]

    @pytest.mark.asyncio
    async def test_get_available_mixers(self, mixer, session) -> None:
        session.ws.auto_reply[("/app/mixers/available", "GET")] = {
            "consoles": [{"consoleId": 4, "manufacturer": "Behringer", "name": "X32",
                          "modelEnums": [{"id": 0, "name": "Full"}]}]
        }
        consoles = await mixer.get_available_mixers()
        assert consoles.get(4).label == "Behringer X32"
        assert consoles.get(4).model_enums[0].name == "Full"

    @pytest.mark.asyncio
    async def test_request_when_not_connected_raises(self) -> None:
        mixer = MixingStation()
        with pytest.raises(MixingStationDisconnected):
            await mixer.get_value("ch.0.mix.on")

    @pytest.mark.asyncio
    async def test_request_without_response_times_out(self, mixer) -> None:
        with pytest.raises(MixingStationTimeout):
            await mixer.get_all_data_paths()

    @pytest.mark.asyncio
    async def test_app_state_follows_pushes(self, mixer, session, listener) -> None:
        session.ws.push({"path": "/app/state", "method": "GET", "body": {"state": "Online", "topState": "connected"}})
        await wait_until(lambda: listener.named("app_state_changed"))
        assert mixer.app_state.is_mixer_connected


class TestToggle:
    @pytest.mark.asyncio
    async def test_toggle_inverts_boolean(self, mixer, session) -> None:
        session.ws.auto_reply[("/console/data/get/ch.0.mix.on/val", "GET")] = {"value": True, "format": "val"}

        assert await mixer.toggle_value("ch.0.mix.on") is False

        await wait_until(lambda: session.ws.sent_to("/console/data/set/ch.0.mix.on/val"))
        assert session.ws.sent_to("/console/data/set/ch.0.mix.on/val")[0]["body"] == {"value": False}
        assert session.ws.sent_to("/console/data/definitions2/ch.0.mix.on") == []

    @pytest.mark.asyncio
    async def test_toggle_steps_to_next_enum(self, mixer, session) -> None:
        session.ws.auto_reply[("/console/data/get/ch.0.send.0.tap/val", "GET")] = {"value": 1, "format": "val"}
        session.ws.auto_reply[("/console/data/definitions2/ch.0.send.0.tap", "GET")] = ENUM_DEFINITION

        assert await mixer.toggle_value("ch.0.send.0.tap") == 2

        await wait_until(lambda: session.ws.sent_to("/console/data/set/ch.0.send.0.tap/val"))
        assert session.ws.sent_to("/console/data/set/ch.0.send.0.tap/val")[0]["body"] == {"value": 2}

    @pytest.mark.asyncio
    async def test_toggle_wraps_from_last_enum_to_first(self, mixer, session) -> None:
        session.ws.auto_reply[("/console/data/get/ch.0.send.0.tap/val", "GET")] = {"value": 2, "format": "val"}
        session.ws.auto_reply[("/console/data/definitions2/ch.0.send.0.tap", "GET")] = ENUM_DEFINITION

        assert await mixer.toggle_value("ch.0.send.0.tap") == 0

        await wait_until(lambda: session.ws.sent_to("/console/data/set/ch.0.send.0.tap/val"))
        assert session.ws.sent_to("/console/data/set/ch.0.send.0.tap/val")[0]["body"] == {"value": 0}

    @pytest.mark.asyncio
    async def test_toggle_numeric_without_enums_is_a_no_op(self, mixer, session) -> None:
        session.ws.auto_reply[("/console/data/get/ch.0.mix.lvl/val", "GET")] = {"value": 0.3, "format": "val"}
        session.ws.auto_reply[("/console/data/definitions2/ch.0.mix.lvl", "GET")] = {
            "value": {"type": "float", "min": 0, "max": 1}
        }

        assert await mixer.toggle_value("ch.0.mix.lvl") is None
        await asyncio.sleep(0.02)
        assert session.ws.sent_to("/console/data/set/ch.0.mix.lvl/val") == []

    @pytest.mark.asyncio
    async def test_toggle_numeric_without_definition_is_a_no_op(self, mixer, session) -> None:
        session.ws.auto_reply[("/console/data/get/ch.0.mix.lvl/val", "GET")] = {"value": 1, "format": "val"}
        session.ws.auto_reply[("/console/data/definitions2/ch.0.mix.lvl", "GET")] = {}

        assert await mixer.toggle_value("ch.0.mix.lvl") is None

    @pytest.mark.asyncio
    async def test_toggle_unknown_enum_id_is_a_no_op(self, mixer, session) -> None:
        session.ws.auto_reply[("/console/data/get/ch.0.send.0.tap/val", "GET")] = {"value": 9, "format": "val"}
        session.ws.auto_reply[("/console/data/definitions2/ch.0.send.0.tap", "GET")] = ENUM_DEFINITION

        assert await mixer.toggle_value("ch.0.send.0.tap") is None

    @pytest.mark.asyncio
    async def test_toggle_string_is_a_no_op(self, mixer, session) -> None:
        session.ws.auto_reply[("/console/data/get/ch.0.cfg.name/val", "GET")] = {"value": "Kick", "format": "val"}

        assert await mixer.toggle_value("ch.0.cfg.name") is None
        await asyncio.sleep(0.02)
        assert session.ws.sent_to("/console/data/set/ch.0.cfg.name/val") == []

    @pytest.mark.asyncio
    async def test_toggle_with_malformed_value_body_is_a_no_op(self, mixer, session) -> None:
        session.ws.auto_reply[("/console/data/get/ch.0.mix.on/val", "GET")] = "oops"

        assert await mixer.toggle_value("ch.0.mix.on") is None
        await asyncio.sleep(0.02)
        assert session.ws.sent_to("/console/data/set/ch.0.mix.on/val") == []

    @pytest.mark.asyncio
    async def test_toggle_with_malformed_enums_is_a_no_op(self, mixer, session) -> None:
        session.ws.auto_reply[("/console/data/get/ch.0.send.0.tap/val", "GET")] = {"value": 1, "format": "val"}
        session.ws.auto_reply[("/console/data/definitions2/ch.0.send.0.tap", "GET")] = {
            "value": {"type": "enum", "enums": [1, 2]}
        }

        assert await mixer.toggle_value("ch.0.send.0.tap") is None
        await asyncio.sleep(0.02)
        assert session.ws.sent_to("/console/data/set/ch.0.send.0.tap/val") == []

    @pytest.mark.asyncio
    async def test_get_value_with_malformed_body_raises(self, mixer, session) -> None:
        session.ws.auto_reply[("/console/data/get/ch.0.mix.on/val", "GET")] = "oops"

        with pytest.raises(MixingStationResponseError):
            await mixer.get_value("ch.0.mix.on")

    @pytest.mark.asyncio
    async def test_toggle_never_raises_on_timeout(self, mixer) -> None:
        assert await mixer.toggle_value("ch.0.mix.on") is None

    @pytest.mark.asyncio
    async def test_toggle_never_raises_when_disconnected(self) -> None:
        assert await MixingStation().toggle_value("ch.0.mix.on") is None
