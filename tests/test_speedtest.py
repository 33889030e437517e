import asyncio

from netquality import speedtest
from netquality.config import SOURCE_SPEEDTEST
from netquality.models import SpeedtestServer

LISTING = """\
Retrieving speedtest.net configuration...
 12345) Globe Telecom (Davao City, Philippines) [25.10 km]
 23456) PLDT (Cebu, Philippines) [12.34 km]
 34567) Converge ICT (Manila, Philippines) [12.34 km]
 45678) Sky Broadband (Manila, Philippines) [900.00 km]
"""

LISTING_NO_DISTANCE = """\
Retrieving speedtest.net configuration...
 777) Some ISP (Somewhere)
 888) Other ISP (Elsewhere)
"""

SIMPLE_OUTPUT = """\
Ping: 12.345 ms
Download: 93.41 Mbit/s
Upload: 41.02 Mbit/s
"""


def test_parse_server_listing():
    servers = speedtest.parse_server_listing(LISTING)
    assert [s.server_id for s in servers] == ["12345", "23456", "34567", "45678"]
    assert servers[0].distance_km == 25.1
    assert servers[0].description.startswith("Globe Telecom")


def test_parse_accepts_parenthesised_distance():
    servers = speedtest.parse_server_listing(" 99) ISP (Town) (3.5 km)\n")
    assert servers[0].distance_km == 3.5


def test_select_nearest_keeps_first_on_tie():
    server, selection = speedtest.select_server(speedtest.parse_server_listing(LISTING))
    assert server.server_id == "23456"
    assert selection == "nearest"


def test_select_first_without_distances():
    server, selection = speedtest.select_server(speedtest.parse_server_listing(LISTING_NO_DISTANCE))
    assert server.server_id == "777"
    assert selection == "first"


def test_select_from_empty_listing():
    assert speedtest.select_server([]) == (None, None)


def test_parse_simple_output():
    download, upload = speedtest.parse_simple_output(SIMPLE_OUTPUT)
    assert download.mbps == 93.41
    assert upload.mbps == 41.02
    assert download.source == SOURCE_SPEEDTEST


def test_parse_simple_output_requires_both_values():
    assert speedtest.parse_simple_output("Download: 93.41 Mbit/s\n") == (None, None)
    assert speedtest.parse_simple_output("ERROR: unable to connect\n") == (None, None)


def test_filter_listing_prefers_region_lines():
    lines = speedtest.filter_listing(LISTING + " 55) Telstra (Sydney, Australia) [6000.00 km]\n")
    assert len(lines) == 4
    assert all("Philippines" in line for line in lines)


def test_filter_listing_without_matches_returns_head():
    output = "\n".join(f" {i}) ISP (City, Country) [{i}.0 km]" for i in range(1, 50))
    lines = speedtest.filter_listing(output)
    assert len(lines) == 30
    assert lines[0].strip().startswith("1)")


def test_missing_utility_is_skipped(monkeypatch):
    monkeypatch.setattr(speedtest, "find_speedtest", lambda: None)
    run = asyncio.run(speedtest.run_speedtest())
    assert not run.installed
    assert run.download is None and run.upload is None


class FakeTool:
    def __init__(self, responses):
        self.responses = responses
        self.calls = []

    async def __call__(self, args, timeout):
        self.calls.append(args)
        response = self.responses[args[1]]
        if isinstance(response, Exception):
            raise response
        return 0, response


def test_auto_selected_server_is_used(monkeypatch):
    tool = FakeTool({"--list": LISTING, "--simple": SIMPLE_OUTPUT})
    monkeypatch.setattr(speedtest, "find_speedtest", lambda: "/usr/bin/speedtest-cli")
    monkeypatch.setattr(speedtest, "_run_tool", tool)

    run = asyncio.run(speedtest.run_speedtest())

    assert run.succeeded
    assert run.selection == "nearest"
    assert run.server.server_id == "23456"
    assert tool.calls[-1] == ["/usr/bin/speedtest-cli", "--simple", "--server", "23456"]


def test_user_server_skips_listing(monkeypatch):
    tool = FakeTool({"--simple": SIMPLE_OUTPUT})
    monkeypatch.setattr(speedtest, "find_speedtest", lambda: "speedtest-cli")
    monkeypatch.setattr(speedtest, "_run_tool", tool)

    run = asyncio.run(speedtest.run_speedtest("4242"))

    assert run.selection == "user"
    assert run.server == SpeedtestServer(server_id="4242")
    assert tool.calls == [["speedtest-cli", "--simple", "--server", "4242"]]


def test_listing_timeout_uses_default_server(monkeypatch):
    tool = FakeTool({"--list": asyncio.TimeoutError(), "--simple": SIMPLE_OUTPUT})
    monkeypatch.setattr(speedtest, "find_speedtest", lambda: "speedtest-cli")
    monkeypatch.setattr(speedtest, "_run_tool", tool)

    run = asyncio.run(speedtest.run_speedtest())

    assert run.selection == "default"
    assert run.server is None
    assert tool.calls[-1] == ["speedtest-cli", "--simple"]
    assert run.succeeded


def test_unparseable_run_is_failure(monkeypatch):
    tool = FakeTool({"--simple": "Cannot retrieve speedtest configuration\n"})
    monkeypatch.setattr(speedtest, "find_speedtest", lambda: "speedtest-cli")
    monkeypatch.setattr(speedtest, "_run_tool", tool)

    run = asyncio.run(speedtest.run_speedtest("1"))

    assert not run.succeeded
    assert "Cannot retrieve" in run.error
