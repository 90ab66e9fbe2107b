import pytest

from cardzones.core.models import FRONT
from cardzones.core.template_store import TemplateSession
from cardzones.core.zone_editor import ZoneEditStateMachine


@pytest.fixture
def session():
    return TemplateSession()


@pytest.fixture
def editor(session):
    return ZoneEditStateMachine(session, FRONT)


@pytest.fixture
def px(editor):
    """Percent coordinates -> pixels on the editing canvas."""

    def convert(x, y):
        return (x / 100.0 * editor.canvas_width, y / 100.0 * editor.canvas_height)

    return convert
