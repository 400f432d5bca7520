"""Tests for the command line interface."""

import json

import pytest
from poolguard.__main__ import EXIT_CLOSURE_REQUIRED, main
from poolguard.config import ENV_MAPPING
from poolguard.sync.storage import JsonFileQueueStorage
from poolguard.models.queue import QueueItem


@pytest.fixture
def queue_file(tmp_path, monkeypatch):
    """Point the CLI at a queue file in a temporary directory."""
    for env_var in ENV_MAPPING:
        monkeypatch.delenv(env_var, raising=False)
    monkeypatch.chdir(tmp_path)
    path = tmp_path / "queue.json"
    monkeypatch.setenv("QUEUE_PATH", str(path))
    return path


class TestCheck:
    """Tests for the check command."""

    def test_compliant(self, capsys):
        """Test compliant readings exit 0 and print a report."""
        code = main(["check", "--free-chlorine", "2.0", "--ph", "7.4"])

        assert code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["report"]["overall"] == "compliant"
        assert output["report"]["total_tests"] == 2
        assert output["closure"]["should_close"] is False

    def test_closure_exit_code(self, capsys):
        """Test readings requiring closure use a distinct exit code."""
        code = main(["check", "--free-chlorine", "0.2"])

        assert code == EXIT_CLOSURE_REQUIRED
        output = json.loads(capsys.readouterr().out)
        assert output["closure"]["should_close"] is True
        assert output["closure"]["reasons"]

    def test_no_readings(self, capsys):
        """Test check without readings is an error."""
        assert main(["check"]) == 1
        assert "at least one reading" in capsys.readouterr().err


class TestQueueCommands:
    """Tests for queue management commands."""

    def test_submit_offline_queues(self, queue_file, capsys):
        """Test submitting without a broker queues the record."""
        code = main(["submit", "--free-chlorine", "2.0", "--pool-id", "lap"])

        assert code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["queued"] is True
        stored = JsonFileQueueStorage(queue_file).get(output["record_id"])
        assert stored.payload["pool_id"] == "lap"

    def test_stats(self, queue_file, capsys):
        """Test stats reflect the queue file."""
        storage = JsonFileQueueStorage(queue_file)
        storage.append(QueueItem(id="a", type="chemical_test"))
        storage.append(QueueItem(id="b", type="chemical_test"))

        assert main(["stats"]) == 0
        output = json.loads(capsys.readouterr().out)
        assert output["total"] == 2
        assert output["by_type"] == {"chemical_test": 2}

    def test_clear_requires_confirmation(self, queue_file, capsys):
        """Test clear refuses to run without --yes."""
        JsonFileQueueStorage(queue_file).append(QueueItem(id="a", type="chemical_test"))

        assert main(["clear"]) == 1
        assert JsonFileQueueStorage(queue_file).get("a") is not None

    def test_clear(self, queue_file):
        """Test clear --yes empties the queue."""
        JsonFileQueueStorage(queue_file).append(QueueItem(id="a", type="chemical_test"))

        assert main(["clear", "--yes"]) == 0
        assert JsonFileQueueStorage(queue_file).list_items() == []

    def test_sync_offline_leaves_queue_untouched(self, queue_file, capsys):
        """Test sync without a broker fails without spending attempts."""
        JsonFileQueueStorage(queue_file).append(QueueItem(id="a", type="chemical_test"))

        assert main(["sync"]) == 1
        output = json.loads(capsys.readouterr().out)
        assert output["offline"] is True
        assert output["failed_items"] == 0
        assert JsonFileQueueStorage(queue_file).get("a").attempts == 0


class TestGlobalOptions:
    """Tests for global flags."""

    def test_generate_config(self, capsys):
        """Test the default config is printed."""
        assert main(["--generate-config"]) == 0
        assert "queue_path" in capsys.readouterr().out

    def test_no_command(self, capsys):
        """Test running without a command prints help."""
        assert main([]) == 1
