import pytest

from cardzones.core.models import BACK, FRONT, IMAGE, TEXT
from cardzones.core.models import ZonePosition as pos
from cardzones.core.template_store import TemplateSession, new_template

pytestmark = pytest.mark.unit


def test_new_session_is_empty_and_clean():
    session = TemplateSession(template=new_template("Membership", front_only=True))
    assert session.template.name == "Membership"
    assert session.template.active_faces() == [FRONT]
    assert session.zones(FRONT) == []
    assert not session.dirty


def test_add_zone_names_and_binds(session):
    first = session.add_zone(FRONT, pos(0, 0, 25, 25))
    second = session.add_zone(FRONT, pos(50, 0, 25, 25), content_type=IMAGE)
    assert first.name == "Zone 1"
    assert second.name == "Zone 2"
    assert first.id != second.id
    assert session.bindings.element(first.id).content_type == TEXT
    assert session.bindings.element(second.id).content_type == IMAGE
    assert session.dirty


def test_add_zone_rejects_invalid_geometry(session):
    assert session.add_zone(FRONT, pos(0, 0, 4, 50)) is None
    assert session.add_zone(FRONT, pos(80, 0, 25, 25)) is None
    assert session.add_zone(FRONT, pos(0, 0, 50, 50)) is not None
    assert session.add_zone(FRONT, pos(25, 25, 50, 50)) is None
    assert len(session.zones(FRONT)) == 1
    assert len(session.bindings) == 1


def test_set_zone_position_keeps_valid_state(session):
    a = session.add_zone(FRONT, pos(0, 0, 25, 25))
    session.add_zone(FRONT, pos(50, 0, 25, 25))
    assert session.set_zone_position(FRONT, a.id, pos(12.5, 0, 25, 25))
    assert not session.set_zone_position(FRONT, a.id, pos(37.5, 0, 25, 25))
    assert a.position == pos(12.5, 0, 25, 25)


def test_lookups_and_face_names(session):
    with pytest.raises(KeyError):
        session.zone(FRONT, "missing")
    assert session.find_zone(FRONT, "missing") is None
    with pytest.raises(ValueError):
        session.zones("side")


def test_rename_and_content_type(session):
    zone = session.add_zone(FRONT, pos(0, 0, 25, 25))
    session.bindings.set_claim_path(zone.id, "name")
    assert session.rename_zone(FRONT, zone.id, "Holder")
    assert session.zone(FRONT, zone.id).name == "Holder"

    assert session.set_zone_content_type(FRONT, zone.id, IMAGE)
    element = session.bindings.element(zone.id)
    assert element.content_type == IMAGE
    assert element.claim_path is None
    assert not session.rename_zone(FRONT, "missing", "x")


def test_delete_zone_drops_binding(session):
    zone = session.add_zone(FRONT, pos(0, 0, 25, 25))
    assert session.delete_zone(FRONT, zone.id)
    assert zone.id not in session.bindings
    assert not session.delete_zone(FRONT, zone.id)


def test_copy_front_to_back_shares_ids_and_bindings(session):
    zone = session.add_zone(FRONT, pos(0, 0, 25, 25))
    session.bindings.set_static_value(zone.id, "ACME")
    old_back = session.add_zone(BACK, pos(50, 50, 25, 25))

    session.copy_front_to_back()
    back = session.zones(BACK)
    assert [z.id for z in back] == [zone.id]
    assert back[0] is not session.zones(FRONT)[0]
    assert old_back.id not in session.bindings
    assert session.bindings.element(zone.id).static_value == "ACME"

    # the front copy still needs the shared binding
    assert session.delete_zone(BACK, zone.id)
    assert zone.id in session.bindings


def test_copy_back_to_front(session):
    session.add_zone(BACK, pos(0, 0, 25, 25))
    session.add_zone(BACK, pos(25, 0, 25, 25))
    session.copy_back_to_front()
    assert [z.position for z in session.zones(FRONT)] == [z.position for z in session.zones(BACK)]


def test_template_attributes_and_saved_flag(session):
    session.set_name("Employee badge")
    session.set_front_only(True)
    assert session.template.name == "Employee badge"
    assert session.template.front_only
    assert session.dirty
    session.mark_saved()
    assert not session.dirty
