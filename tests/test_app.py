import subprocess
import sys


def test_app_help_runs():
    proc = subprocess.run(
        [sys.executable, "-m", "walkin_queue.app", "-h"],
        capture_output=True,
        text=True,
        check=False,
    )
    assert proc.returncode == 0
    out = proc.stdout + proc.stderr
    assert "main entrypoint" in out
    for cmd in ("serve", "join", "start", "complete", "walk-ins", "available", "watch"):
        assert cmd in out


def test_watch_help_runs():
    proc = subprocess.run(
        [sys.executable, "-m", "walkin_queue.app", "watch", "-h"],
        capture_output=True,
        text=True,
        check=False,
    )
    assert proc.returncode == 0
    out = proc.stdout + proc.stderr
    assert "--barber-id" in out
    assert "--as-barber" in out
