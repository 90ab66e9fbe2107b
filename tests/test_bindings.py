import asyncio
import logging

import pytest

from cardzones.core.bindings import (
    AssetResolutionCache,
    BindingResolver,
    ResolutionContext,
    TemplateMetadata,
    flatten_sample_data,
    is_dynamic,
    normalize_claim_path,
)
from cardzones.core.models import IMAGE, TEXT, AssetCriteria, DynamicCardElement

pytestmark = pytest.mark.unit

LOGO = AssetCriteria("issuer", "logo")


def image_element(zone_id="img", **kwargs):
    return DynamicCardElement(zone_id=zone_id, content_type=IMAGE, **kwargs)


# ─────────────────────────────────────────────
# claim paths
# ─────────────────────────────────────────────

@pytest.mark.parametrize(
    "raw, expected",
    [
        ("$.credentialSubject.name", "name"),
        ("credentialSubject.address.city", "address.city"),
        ("$.credentialSubject.degrees[0].title", "degrees.title"),
        ("employment.0.employer", "employment.employer"),
        ("  income ", "income"),
    ],
)
def test_normalize_claim_path(raw, expected):
    assert normalize_claim_path(raw) == expected


def test_flatten_sample_data():
    flat = flatten_sample_data(
        {
            "name": "Ada",
            "age": 36,
            "address": {"city": "London"},
            "degrees": [{"title": "BSc"}, {"title": "MSc"}],
            "missing": None,
        }
    )
    assert flat == {"name": "Ada", "age": "36", "address.city": "London", "degrees.title": "BSc"}


def test_is_dynamic():
    assert is_dynamic("__dynamic:issuer_name")
    assert not is_dynamic("issuer_name")
    assert not is_dynamic(None)


# ─────────────────────────────────────────────
# text resolution
# ─────────────────────────────────────────────

def test_dynamic_key_ignores_sample_data_with_same_key():
    context = ResolutionContext(
        sample_data={"__dynamic:issuer_name": "Wrong", "issuer_name": "Also wrong"},
        metadata=TemplateMetadata(issuer_name="State University"),
    )
    resolver = BindingResolver(context)
    element = DynamicCardElement(zone_id="z", claim_path="__dynamic:issuer_name")
    assert resolver.resolve_text(element) == "State University"


def test_unknown_dynamic_key_resolves_empty(caplog):
    resolver = BindingResolver()
    element = DynamicCardElement(zone_id="z", claim_path="__dynamic:favourite_colour")
    with caplog.at_level(logging.WARNING, logger="cardzones"):
        assert resolver.resolve_text(element) is None
    assert "favourite_colour" in caplog.text


def test_claim_lookup_falls_back_to_label():
    resolver = BindingResolver(ResolutionContext(sample_data={"name": "Ada"}))
    assert resolver.resolve_text(DynamicCardElement(zone_id="a", claim_path="$.credentialSubject.name")) == "Ada"
    assert resolver.resolve_text(DynamicCardElement(zone_id="b", claim_path="income", label="Income")) == "Income"
    assert resolver.resolve_text(DynamicCardElement(zone_id="c", claim_path="income")) is None


def test_static_value_and_empty_binding():
    resolver = BindingResolver()
    resolved = resolver.resolve(DynamicCardElement(zone_id="a", static_value="MEMBER"))
    assert resolved.kind == TEXT
    assert resolved.value == "MEMBER"
    assert resolver.resolve(DynamicCardElement(zone_id="b")).is_empty


# ─────────────────────────────────────────────
# image resolution
# ─────────────────────────────────────────────

def test_logo_uri_is_used_directly():
    resolver = BindingResolver()
    resolved = resolver.resolve(image_element(logo_uri="https://example.org/l.png"))
    assert resolved.value == "https://example.org/l.png"
    assert not resolved.pending


def test_criteria_is_pending_until_resolved():
    calls = []

    async def query(criteria):
        calls.append(criteria)
        return "https://assets.example.org/logo.png"

    resolver = BindingResolver(ResolutionContext(asset_query=query))
    element = image_element(asset_criteria=LOGO)
    assert resolver.resolve(element).pending

    results = asyncio.run(resolver.resolve_all([element]))
    assert results == {"img": "https://assets.example.org/logo.png"}
    resolved = resolver.resolve(element)
    assert resolved.value == "https://assets.example.org/logo.png"
    assert not resolved.pending
    assert calls == [LOGO]

    # cached: no second query
    asyncio.run(resolver.resolve_all([element]))
    assert len(calls) == 1


def test_sync_query_is_accepted():
    resolver = BindingResolver(ResolutionContext(asset_query=lambda criteria: "file:///logo.png"))
    assert asyncio.run(resolver.resolve_asset(image_element(asset_criteria=LOGO))) == "file:///logo.png"


def test_failing_query_degrades_to_none(caplog):
    async def query(criteria):
        raise ConnectionError("index down")

    resolver = BindingResolver(ResolutionContext(asset_query=query))
    element = image_element(asset_criteria=LOGO)
    with caplog.at_level(logging.WARNING, logger="cardzones"):
        results = asyncio.run(resolver.resolve_all([element]))
    assert results == {"img": None}
    assert "index down" in caplog.text

    resolved = resolver.resolve(element)
    assert resolved.is_empty
    assert not resolved.pending


def test_one_failure_does_not_block_other_zones():
    async def query(criteria):
        if criteria.asset_type == "broken":
            raise RuntimeError("boom")
        await asyncio.sleep(0)
        return f"uri:{criteria.asset_type}"

    resolver = BindingResolver(ResolutionContext(asset_query=query))
    elements = [
        image_element("a", asset_criteria=AssetCriteria("issuer", "logo")),
        image_element("b", asset_criteria=AssetCriteria("issuer", "broken")),
        image_element("c", logo_uri="direct"),
    ]
    assert asyncio.run(resolver.resolve_all(elements)) == {"a": "uri:logo", "b": None}


def test_concurrent_requests_share_one_query():
    calls = []

    async def query(criteria):
        calls.append(criteria)
        await asyncio.sleep(0.01)
        return "shared"

    resolver = BindingResolver(ResolutionContext(asset_query=query))
    element = image_element(asset_criteria=LOGO)

    async def run():
        first = resolver.schedule([element])["img"]
        second = resolver.schedule([element])["img"]
        assert first is second
        return await asyncio.gather(first, resolver.resolve_asset(element))

    assert asyncio.run(run()) == ["shared", "shared"]
    assert len(calls) == 1


def test_invalidate_and_refresh():
    answers = iter(["first", "second"])
    resolver = BindingResolver(ResolutionContext(asset_query=lambda criteria: next(answers)))
    element = image_element(asset_criteria=LOGO)

    assert asyncio.run(resolver.resolve_asset(element)) == "first"
    assert asyncio.run(resolver.resolve_asset(element)) == "first"
    resolver.invalidate("img")
    assert resolver.resolve(element).pending
    assert asyncio.run(resolver.resolve_asset(element, refresh=True)) == "second"


def test_cache_snapshot():
    cache = AssetResolutionCache()
    cache.store("a", "x")
    cache.store("b", None)
    assert "b" in cache
    assert cache.snapshot() == {"a": "x", "b": None}
    cache.clear()
    assert cache.snapshot() == {}


def test_cache_entry_is_tied_to_its_criteria():
    cache = AssetResolutionCache()
    cache.store("a", "x", LOGO)
    assert cache.has("a", LOGO)
    assert not cache.has("a", AssetCriteria("issuer", "seal"))
    assert not cache.has("b", LOGO)


def test_superseded_query_does_not_overwrite_newer_criteria():
    seal = AssetCriteria("issuer", "seal")

    async def query(criteria):
        # the stale query settles last
        await asyncio.sleep(0.02 if criteria == LOGO else 0)
        return criteria.asset_type

    resolver = BindingResolver(ResolutionContext(asset_query=query))

    async def run():
        old = resolver.schedule([image_element(asset_criteria=LOGO)])["img"]
        new = resolver.schedule([image_element(asset_criteria=seal)])["img"]
        assert old is not new
        return await asyncio.gather(old, new)

    assert asyncio.run(run()) == ["logo", "seal"]
    assert resolver.resolve(image_element(asset_criteria=seal)).value == "seal"
    assert resolver.resolve(image_element(asset_criteria=LOGO)).pending
