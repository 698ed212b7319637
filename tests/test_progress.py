"""Tests for operator progress output."""

import io

from imageupload.core.progress import ProgressReporter


def test_status_collapses_repeats():
    """Test repeated messages become dots and a new message starts a line."""
    stream = io.StringIO()
    progress = ProgressReporter(stream)

    progress.status("Importing volume", "Pending")
    progress.status("Importing volume", "Pending")
    progress.status("Importing volume", "Pending")
    progress.status("Importing volume", "Converting 10%")
    progress.done()

    assert stream.getvalue() == (
        "Importing volume: Pending..\nImporting volume: Converting 10% done.\n"
    )


def test_done_resets_status():
    stream = io.StringIO()
    progress = ProgressReporter(stream)

    progress.status("Importing volume", "Pending")
    progress.done()
    progress.status("Importing volume", "Pending")

    assert stream.getvalue() == "Importing volume: Pending done.\nImporting volume: Pending"


def test_line_and_dot():
    stream = io.StringIO()
    progress = ProgressReporter(stream)

    progress.say("Copying")
    progress.dot()
    progress.line("")

    assert stream.getvalue() == "Copying.\n"


def test_defaults_to_stderr(capsys):
    ProgressReporter().say("hello")

    assert capsys.readouterr().err == "hello"
