import pytest

from app.harvester.surface import is_target_closed_message, open_surface


def test_target_closed_messages_are_recognised() -> None:
    assert is_target_closed_message("Target closed") is True
    assert is_target_closed_message("Message: invalid session id") is True
    assert is_target_closed_message("element not interactable") is False


def test_open_surface_rejects_unknown_backend() -> None:
    with pytest.raises(ValueError):
        with open_surface("lynx"):
            pass
