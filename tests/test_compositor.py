import asyncio

import pytest

from cardzones.core.autofit import average_char_width_measure
from cardzones.core.bindings import BindingResolver, ResolutionContext, TemplateMetadata
from cardzones.core.compositor import (
    CLEAN,
    KIND_EMPTY,
    KIND_IMAGE,
    KIND_PLACEHOLDER,
    KIND_TEXT,
    LABELS,
    ZONES,
    Box,
    CardCompositor,
    align_box,
    transform_origin,
)
from cardzones.core.models import BACK, FRONT, IMAGE, AssetCriteria, DynamicCardElement
from cardzones.core.models import ZonePosition as pos

pytestmark = pytest.mark.unit


@pytest.fixture
def compositor(session):
    context = ResolutionContext(
        sample_data={"name": "Ada Lovelace", "income": "42000"},
        metadata=TemplateMetadata(issuer_name="Analytical Society"),
    )
    return CardCompositor(session, BindingResolver(context), average_char_width_measure())


def test_align_box_and_origin():
    container = Box(0, 0, 100, 50)
    assert align_box(container, 50, 10, "left", "top") == Box(0, 0, 50, 10)
    assert align_box(container, 50, 10, "center", "middle") == Box(25, 20, 50, 10)
    assert align_box(container, 50, 10, "right", "bottom") == Box(50, 40, 50, 10)
    # scaled-up content overflows around its anchor
    assert align_box(container, 200, 100, "center", "middle") == Box(-50, -25, 200, 100)
    assert transform_origin("right", "middle") == "right center"


def test_empty_zone_per_visibility_mode(session, compositor):
    zone = session.add_zone(FRONT, pos(0, 0, 50, 50))

    labels = compositor.compose_face(FRONT, LABELS).zone(zone.id)
    assert labels.kind == KIND_PLACEHOLDER
    assert labels.text == "Zone 1"
    assert labels.hit_region is None

    clean = compositor.compose_face(FRONT, CLEAN).zone(zone.id)
    assert clean.kind == KIND_EMPTY
    assert not clean.visible

    zones = compositor.compose_face(FRONT, ZONES)
    assert zones.zone(zone.id).kind == KIND_PLACEHOLDER
    assert zones.hit_regions == [(zone.id, Box(0, 0, 170, 107))]

    with pytest.raises(ValueError):
        compositor.compose_face(FRONT, "outline")


def test_text_zone_layout(session, compositor):
    zone = session.add_zone(FRONT, pos(0, 0, 50, 50))
    session.bindings.set_claim_path(zone.id, "$.credentialSubject.name")
    session.bindings.set_alignment(zone.id, "left")
    session.bindings.set_vertical_alignment(zone.id, "top")

    composed = compositor.compose_face(FRONT, CLEAN).zone(zone.id)
    assert composed.kind == KIND_TEXT
    assert composed.text == "Ada Lovelace"
    assert composed.box == Box(0, 0, 170, 107)
    assert composed.font_size == 14
    assert composed.lines == ["Ada Lovelace"]
    assert composed.justify_content == "flex-start"
    assert composed.align_items == "flex-start"
    assert composed.text_align == "left"
    assert composed.transform_origin == "left top"


def test_text_max_size_follows_scale_and_shrinks(session, compositor):
    zone = session.add_zone(FRONT, pos(0, 0, 25, 12.5))
    session.bindings.set_static_value(zone.id, "VERIFIABLE CREDENTIAL")
    session.bindings.set_scale(zone.id, 2.0)

    composed = compositor.compose_face(FRONT).zone(zone.id)
    inner_width = 85 - 2 * session.settings.zone_padding
    assert composed.scale == 2.0
    assert composed.font_size < 28
    measure = average_char_width_measure()
    assert measure(composed.text, composed.font_size) <= inner_width or composed.font_size == 8


def test_wrapped_text_splits_lines(session, compositor):
    zone = session.add_zone(FRONT, pos(0, 0, 25, 50))
    session.bindings.set_static_value(zone.id, "VERIFIABLE CREDENTIAL OF MEMBERSHIP")
    session.bindings.set_text_wrap(zone.id, True)

    composed = compositor.compose_face(FRONT).zone(zone.id)
    assert composed.wrap
    assert composed.font_size == 14
    assert len(composed.lines) > 1


def test_dynamic_metadata_zone(session, compositor):
    zone = session.add_zone(BACK, pos(0, 0, 100, 25))
    session.bindings.set_claim_path(zone.id, "__dynamic:issuer_name")
    assert compositor.compose_face(BACK).zone(zone.id).text == "Analytical Society"


def test_image_box_is_scaled_and_aligned(session, compositor):
    zone = session.add_zone(FRONT, pos(0, 0, 50, 50), content_type=IMAGE)
    session.bindings.set_logo_uri(zone.id, "logo.png")
    session.bindings.set_scale(zone.id, 0.5)
    session.bindings.set_alignment(zone.id, "right")
    session.bindings.set_vertical_alignment(zone.id, "bottom")

    composed = compositor.compose_face(FRONT, CLEAN).zone(zone.id)
    assert composed.kind == KIND_IMAGE
    assert composed.image_url == "logo.png"
    assert composed.image_box == Box(85, 53.5, 85, 53.5)


def test_criteria_image_resolves_asynchronously(session):
    async def query(criteria):
        return "https://assets.example.org/seal.png"

    compositor = CardCompositor(session, BindingResolver(ResolutionContext(asset_query=query)))
    zone = session.add_zone(FRONT, pos(0, 0, 50, 50), content_type=IMAGE)
    session.bindings.set_asset_criteria(zone.id, AssetCriteria("issuer", "seal"))

    before = compositor.compose_face(FRONT).zone(zone.id)
    assert before.pending
    assert before.kind == KIND_PLACEHOLDER

    faces = asyncio.run(compositor.compose_card_async())
    after = faces[FRONT].zone(zone.id)
    assert after.kind == KIND_IMAGE
    assert after.image_url == "https://assets.example.org/seal.png"
    assert not after.pending


def test_front_only_card_has_one_face(session, compositor):
    assert set(compositor.compose_card()) == {FRONT, BACK}
    session.set_front_only(True)
    assert set(compositor.compose_card()) == {FRONT}


def test_hit_test_prefers_topmost(session, compositor):
    a = session.add_zone(FRONT, pos(0, 0, 50, 50))
    b = session.add_zone(FRONT, pos(50, 0, 50, 50))
    composed = compositor.compose_face(FRONT, ZONES)
    assert compositor.hit_test(composed, 10, 10) == a.id
    assert compositor.hit_test(composed, 300, 10) == b.id
    assert compositor.hit_test(composed, 10, 200) is None
    assert compositor.hit_test(compositor.compose_face(FRONT, LABELS), 10, 10) is None


def test_reset_requires_confirmation(session, compositor):
    zone = session.add_zone(FRONT, pos(0, 0, 50, 50))
    session.bindings.set_claim_path(zone.id, "income")
    session.mark_saved()

    compositor.request_reset(FRONT, zone.id)
    assert session.bindings.element(zone.id).claim_path == "income"
    compositor.cancel_reset()
    assert compositor.confirm_reset() is None
    assert session.bindings.element(zone.id).claim_path == "income"

    compositor.request_reset(FRONT, zone.id)
    element = compositor.confirm_reset()
    assert element == DynamicCardElement.default(zone.id)
    assert session.bindings.element(zone.id) == DynamicCardElement.default(zone.id)
    assert compositor.pending_reset is None
    assert session.dirty

    with pytest.raises(KeyError):
        compositor.request_reset(FRONT, "missing")


def test_reset_of_deleted_zone_is_ignored(session, compositor):
    zone = session.add_zone(FRONT, pos(0, 0, 50, 50))
    compositor.request_reset(FRONT, zone.id)
    session.delete_zone(FRONT, zone.id)
    assert compositor.confirm_reset() is None


def test_changed_criteria_are_queried_again(session):
    async def query(criteria):
        return f"https://assets.example.org/{criteria.asset_type}.png"

    compositor = CardCompositor(session, BindingResolver(ResolutionContext(asset_query=query)))
    zone = session.add_zone(FRONT, pos(0, 0, 50, 50), content_type=IMAGE)

    session.bindings.set_asset_criteria(zone.id, AssetCriteria("issuer", "seal"))
    first = asyncio.run(compositor.compose_face_async(FRONT)).zone(zone.id)
    assert first.image_url == "https://assets.example.org/seal.png"

    session.bindings.set_asset_criteria(zone.id, AssetCriteria("issuer", "logo"))
    assert compositor.compose_face(FRONT).zone(zone.id).pending
    second = asyncio.run(compositor.compose_face_async(FRONT)).zone(zone.id)
    assert second.image_url == "https://assets.example.org/logo.png"
