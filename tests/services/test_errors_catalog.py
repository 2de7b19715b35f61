import pytest

from appforge.errors_catalog import actionable_error


def test_actionable_error_formats_message_with_suggested_action():
    message = actionable_error("directory_not_empty", path="/srv/app")

    assert "Install directory is not empty: /srv/app" in message
    assert "Suggested action:" in message
    assert "--overwrite" in message


def test_actionable_error_rejects_unknown_code():
    with pytest.raises(KeyError):
        actionable_error("no_such_code")
