# tests/test_console_connector.py

from __future__ import annotations

from gh_monitor.connectors.console_connector import NOT_A_COMMAND, run_console_loop


class Script:
    """Feeds queued lines to the loop, then raises EOFError."""

    def __init__(self, *lines: str) -> None:
        self.lines = list(lines)
        self.prompts: list[str] = []

    def __call__(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.lines:
            raise EOFError
        return self.lines.pop(0)


def test_console_runs_commands_until_exit(state) -> None:
    out: list[str] = []
    script = Script("", "hello", "/refresh wait", "/exit", "/stats")

    run_console_loop(state, read_line=script, write=out.append)

    assert "Monitoring acme/projects/3" in out[0]
    assert any(NOT_A_COMMAND in line for line in out)
    assert any("[POLL] Running a poll cycle..." in line for line in out)
    assert any("Poll cycle completed successfully." in line for line in out)
    # /stats comes after /exit and is never read.
    assert script.lines == ["/stats"]
    assert state.source.calls == 1


def test_console_stops_on_eof(state) -> None:
    out: list[str] = []

    run_console_loop(state, read_line=Script(), write=out.append)

    assert len(out) == 1


def test_console_survives_a_crashing_command(state, monkeypatch) -> None:
    out: list[str] = []

    def boom(*args, **kwargs):
        raise RuntimeError("kaboom")

    monkeypatch.setattr(state.store, "list_tasks", boom)

    run_console_loop(state, read_line=Script("/tasks", "/health"), write=out.append)

    assert any("Internal error while handling a command." in line for line in out)
    assert any("Health: ok" in line for line in out)
