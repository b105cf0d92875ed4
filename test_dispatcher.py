"""
Tests for the interactive command loop (CommandDispatcher).

The bus is a FakeBus and the console a StringIO, so every test drives the
dispatcher exactly as the operator would, line by line.
"""

import json

from ess_control import CommandDispatcher
from ess_mqtt import (
    CommandType,
    ConfigAction,
    ConfigItem,
    ConfigResponse,
    EssAppStatus,
    PublishError,
    RequestTimeoutError,
)
from ess_mqtt.codec import decode_config_request, decode_control_request, encode
from ess_mqtt.subjects import app_configs_subject, app_controls_subject

from conftest import MRID, REGION

CONTROL_SUBJECT = app_controls_subject(REGION, "ess-manager")
CONFIG_SUBJECT = app_configs_subject(REGION, "ess-manager")


def test_soc_max_publishes_one_control_request(dispatcher, fake_bus, scripted_input, console):
    scripted_input.feed("85.5")

    assert dispatcher.handle_line("soc_max") is True

    assert len(fake_bus.published) == 1
    subject, payload = fake_bus.published[0]
    assert subject == CONTROL_SUBJECT

    request = decode_control_request(payload)
    assert request.command_count == 1
    command = request.commands[0]
    assert command.command_type == CommandType.SET_MAX_SOC
    assert command.value == 85.5
    assert command.mrid == MRID

    assert "Enter SOC Max value:" in console.getvalue()
    assert "Sending request:" in console.getvalue()
    assert fake_bus.requests == []
    assert dispatcher.get_stats()['publishes'] == 1


def test_soc_min_publishes_min_command(dispatcher, fake_bus, scripted_input):
    scripted_input.feed("  12 ")

    dispatcher.handle_line("soc_min")

    request = decode_control_request(fake_bus.published[0][1])
    assert request.commands[0].command_type == CommandType.SET_MIN_SOC
    assert request.commands[0].value == 12.0


def test_invalid_soc_value_publishes_nothing(dispatcher, fake_bus, scripted_input, console):
    for text in ("abc", "", "nan", "inf"):
        scripted_input.feed(text)
        assert dispatcher.handle_line("soc_min") is True

    assert fake_bus.published == []
    assert "Invalid value: abc" in console.getvalue()
    assert console.getvalue().count("Invalid value:") == 4
    assert dispatcher.get_stats() == {'publishes': 0, 'requests': 0, 'errors': 0}


def test_get_prints_remote_value(dispatcher, fake_bus, console):
    seen = []

    def reply(payload):
        request = decode_config_request(payload)
        seen.append(request)
        return encode(ConfigResponse(items=[
            ConfigItem(key=item.key, value="bar") for item in request.items
        ]))

    fake_bus.reply = reply

    assert dispatcher.handle_line("get foo") is True

    assert len(fake_bus.requests) == 1
    assert fake_bus.requests[0][0] == CONFIG_SUBJECT
    assert seen[0].action == ConfigAction.GET
    assert seen[0].items == [ConfigItem(key="ess-manager.foo", value="")]
    assert fake_bus.published == []

    output = console.getvalue()
    assert "Response:" in output
    assert '"key": "ess-manager.foo"' in output
    assert '"value": "bar"' in output
    assert dispatcher.get_stats()['requests'] == 1


def test_get_prints_remote_error(dispatcher, fake_bus, console):
    fake_bus.reply = encode(ConfigResponse(error="unknown key"))

    dispatcher.handle_line("get foo")

    assert "Remote error: unknown key" in console.getvalue()
    assert dispatcher.get_stats()['errors'] == 0


def test_set_publishes_without_reply(dispatcher, fake_bus):
    assert dispatcher.handle_line("set foo bar") is True

    assert fake_bus.requests == []
    assert len(fake_bus.published) == 1
    subject, payload = fake_bus.published[0]
    assert subject == CONFIG_SUBJECT

    request = decode_config_request(payload)
    assert request.action == ConfigAction.SET
    assert request.items == [ConfigItem(key="ess-manager.foo", value="bar")]


def test_set_value_is_rest_of_line(dispatcher, fake_bus):
    dispatcher.handle_line("set mode island  grid")

    request = decode_config_request(fake_bus.published[0][1])
    assert request.items[0].value == "island  grid"


def test_malformed_get_and_set_print_usage(dispatcher, fake_bus, console):
    for line in ("get", "get a b", "set", "set foo"):
        assert dispatcher.handle_line(line) is True

    output = console.getvalue()
    assert "Error: Usage: get <key>" in output
    assert "Error: Usage: set <key> <value>" in output
    assert output.count("Enter:") == 4
    assert fake_bus.published == []
    assert fake_bus.requests == []


def test_unknown_and_empty_input_reprint_usage(dispatcher, fake_bus, console):
    before = dispatcher.get_stats()

    for line in ("", "   ", "bogus", "P", "exit now"):
        assert dispatcher.handle_line(line) is True

    output = console.getvalue()
    assert "Unknown command: bogus" in output
    assert output.count("Enter:") == 5
    assert dispatcher.get_stats() == before
    assert fake_bus.published == []
    assert fake_bus.requests == []


def test_print_usage_lists_every_command(dispatcher, console):
    dispatcher.print_usage()

    lines = console.getvalue().splitlines()
    assert lines[0] == "Enter:"
    assert [line.split(':')[0].strip() for line in lines[1:]] == [
        "p", "soc_max", "soc_min", "get <key>", "set <key> <value>", "exit",
    ]


def test_print_status_shows_latest_report(dispatcher, mirror, console):
    dispatcher.handle_line("p")
    assert "(no status received yet)" in console.getvalue()

    for soc in (10.0, 20.0, 30.0):
        mirror.update(EssAppStatus(mrid=MRID, soc=soc))

    dispatcher.handle_line("p")

    last_block = console.getvalue().rsplit("Status: ", 1)[1]
    assert json.loads(last_block)['soc'] == 30.0


def test_print_status_warns_when_listener_stopped(fake_bus, mirror, console):
    class StoppedListener:
        failure = "subscription ended: connection lost (rc=Unspecified error)"

    dispatcher = CommandDispatcher(
        bus=fake_bus, mirror=mirror, region=REGION, mrid=MRID,
        listener=StoppedListener(), out=console,
    )

    dispatcher.handle_line("p")

    assert "status may be stale" in console.getvalue()


def test_exit_stops_the_loop(dispatcher, scripted_input, console):
    scripted_input.feed("p", "exit", "p")

    dispatcher.run()

    assert console.getvalue().rstrip().endswith("Quitting...")
    assert scripted_input.lines == ["p"]
    assert dispatcher.handle_line("exit") is False


def test_end_of_input_quits(dispatcher, console):
    dispatcher.run()

    assert "Quitting..." in console.getvalue()


def test_request_timeout_keeps_loop_running(dispatcher, fake_bus, scripted_input, console):
    fake_bus.request_error = RequestTimeoutError(CONFIG_SUBJECT, 5.0)
    scripted_input.feed("get foo", "p", "exit")

    dispatcher.run()

    output = console.getvalue()
    assert f"Error: No reply on '{CONFIG_SUBJECT}' within 5.0s" in output
    assert "Status:" in output
    assert scripted_input.lines == []
    assert dispatcher.get_stats() == {'publishes': 0, 'requests': 1, 'errors': 1}


def test_malformed_reply_is_reported(dispatcher, fake_bus, console):
    fake_bus.reply = b'not json'

    assert dispatcher.handle_line("get foo") is True

    assert "Error: Payload is not valid JSON" in console.getvalue()
    assert dispatcher.get_stats()['errors'] == 1


def test_publish_failure_is_reported(dispatcher, fake_bus, scripted_input, console):
    fake_bus.publish_error = PublishError("Not connected to MQTT broker at 127.0.0.1:1883")
    scripted_input.feed("80")

    assert dispatcher.handle_line("soc_max") is True
    assert dispatcher.handle_line("set foo bar") is True

    assert console.getvalue().count("Error: Not connected") == 2
    assert dispatcher.get_stats() == {'publishes': 0, 'requests': 0, 'errors': 2}


def test_subject_overrides(fake_bus, mirror, console):
    dispatcher = CommandDispatcher(
        bus=fake_bus, mirror=mirror, region=REGION, mrid=MRID,
        service="ess-lab", config_subject="lab.configs", out=console,
    )

    dispatcher.handle_line("set foo bar")

    subject, payload = fake_bus.published[0]
    assert subject == "lab.configs"
    assert decode_config_request(payload).items[0].key == "ess-lab.foo"
    assert dispatcher.control_subject == app_controls_subject(REGION, "ess-lab")


def test_unparseable_reply_keeps_loop_running(dispatcher, fake_bus, scripted_input, console):
    replies = [
        b'{"items": [], "error": 1' + b'0' * 5000 + b'}',
        b'[' * 200000,
        encode(ConfigResponse(items=[ConfigItem(key="ess-manager.foo", value="bar")])),
    ]
    fake_bus.reply = lambda payload: replies.pop(0)
    scripted_input.feed("get foo", "get foo", "get foo", "exit")

    dispatcher.run()

    output = console.getvalue()
    assert output.count("Error:") == 2
    assert '"value": "bar"' in output
    assert output.rstrip().endswith("Quitting...")
    assert dispatcher.get_stats() == {'publishes': 0, 'requests': 3, 'errors': 2}
