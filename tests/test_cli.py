"""
CLI: track CSV parsing, offline replay, command publishing.
"""

import csv
import json
import sys

import pytest

from turf_cli import cli
from turf_cli.track_io import iter_samples
from turf_engine.tracking import ActivityMode

from helpers import square_samples


def write_track(path, samples, extra_rows=()):
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["latitude", "longitude", "accuracy", "timestamp"])
        for s in samples:
            writer.writerow([s.latitude, s.longitude, s.accuracy, s.timestamp])
        for row in extra_rows:
            writer.writerow(row)
    return path


class TestTrackIO:

    def test_reads_samples_and_skips_bad_rows(self, tmp_path):
        samples = square_samples()[:3]
        path = write_track(tmp_path / "track.csv", samples, extra_rows=[["x", "7.0", "5", "1"], ["45.0", "7.0", "", "1700000000000"]])

        parsed = list(iter_samples(path))

        assert parsed[:3] == samples
        assert len(parsed) == 4
        assert parsed[3].accuracy is None

    def test_missing_column(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text("lat,lon\n1,2\n")
        with pytest.raises(KeyError):
            list(iter_samples(path))

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("")
        assert list(iter_samples(path)) == []


class TestReplay:

    def test_replay_captures_loop(self, tmp_path):
        path = write_track(tmp_path / "track.csv", square_samples())

        territories = cli.replay(str(path), ActivityMode.WALK, owner_id="alice")

        assert [t.id for t in territories] == ["alice-1"]
        assert territories[0].owner("alice").strength == 1.0
        assert territories[0].created_at > square_samples()[0].timestamp

    def test_replay_empty_track(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("latitude,longitude,accuracy,timestamp\n")
        assert cli.replay(str(path), ActivityMode.RUN) == []

    def test_main_prints_json(self, tmp_path, monkeypatch, capsys):
        path = write_track(tmp_path / "track.csv", square_samples())
        monkeypatch.setattr(sys, "argv", ["turf-cli", "replay", str(path), "--mode", "walk", "--owner", "bob", "--json"])

        cli.main()

        data = json.loads(capsys.readouterr().out)
        assert len(data) == 1
        assert data[0]["owners"] == [{"ownerId": "bob", "strength": 1.0}]


class TestCommands:

    @pytest.fixture
    def sent(self, monkeypatch):
        calls = []

        def fake_send(command, device_id, broker, port, prefix):
            calls.append((command, device_id, broker, port, prefix))

        monkeypatch.setattr(cli, "send_command", fake_send)
        return calls

    def test_start_command(self, sent, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["turf-cli", "--device-id", "phone_09", "start", "run", "--step-counter"])
        cli.main()
        assert sent == [({'command': 'start', 'mode': 'run', 'step_counter': True}, "phone_09", "localhost", 1883, "turf")]

    def test_steps_command(self, sent, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["turf-cli", "--prefix", "game", "steps", "12"])
        cli.main()
        assert sent[0][0] == {'command': 'steps', 'delta': 12}
        assert sent[0][4] == "game"

    @pytest.mark.parametrize("name", ["pause", "resume", "stop", "status", "foreground"])
    def test_simple_commands(self, sent, monkeypatch, name):
        monkeypatch.setattr(sys, "argv", ["turf-cli", name])
        cli.main()
        assert sent[0][0] == {'command': name}

    def test_no_command_exits(self, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["turf-cli"])
        with pytest.raises(SystemExit):
            cli.main()
