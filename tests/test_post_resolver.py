"""Tests for post URL resolution."""

import pytest

from provisioner.platforms.exceptions import MetaAPIError, ResolutionError
from provisioner.services.post_resolver import (
    MATCHERS,
    PostReferenceResolver,
    match_numeric_segment,
    match_post_id,
    match_query_params,
)


# ---------------------------------------------------------------------------
# Pattern matchers
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://www.facebook.com/pizzaria/posts/998877", "998877"),
        ("https://www.facebook.com/photo/?fbid=445566&set=a.112233", "445566"),
        ("https://www.facebook.com/permalink.php?story_fbid=778899&id=123", "778899"),
        (
            "https://www.facebook.com/pizzaria/posts/pfbid02Xy7AbCdEfGh9Kz",
            "pfbid02Xy7AbCdEfGh9Kz",
        ),
        (
            "https://www.facebook.com/story.php?story_fbid=pfbid0AbC123&id=123",
            "pfbid0AbC123",
        ),
    ],
)
def test_canonical_url_shapes(url, expected):
    assert match_post_id(url) == expected


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://www.facebook.com/pizzaria/photos/a.101010/202020/", "202020"),
        ("https://www.facebook.com/pizzaria/photos/303030", "303030"),
        ("https://www.facebook.com/photo.php?fbid=404040", "404040"),
        ("https://m.facebook.com/pizzaria/videos/505050/", "505050"),
        ("https://www.facebook.com/share?post_id=606060", "606060"),
    ],
)
def test_other_url_shapes(url, expected):
    assert match_post_id(url) == expected


def test_numeric_segment_takes_the_last_one():
    assert match_numeric_segment("https://facebook.com/111/videos/222/") == "222"


def test_query_params_order():
    assert match_query_params("https://facebook.com/x?post_id=2&id=1") == "1"


def test_matchers_are_ordered_specific_first():
    names = [m.__name__ for m in MATCHERS]
    assert names.index("match_posts_path") < names.index("match_pfbid")
    assert names.index("match_pfbid") < names.index("match_numeric_segment")
    assert names[-1] == "match_query_params"


@pytest.mark.parametrize(
    "url",
    ["https://www.facebook.com/pizzaria", "not a url", "https://example.com/about"],
)
def test_no_match(url):
    assert match_post_id(url) is None


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


def test_lookup_result_wins_over_patterns(fake_client):
    fake_client.lookup_result = "998877"
    resolver = PostReferenceResolver(fake_client, verify=False)

    ref = resolver.resolve("123", "https://facebook.com/page/posts/111")

    assert ref.object_story_id == "123_998877"
    assert ref.source == "lookup"
    assert fake_client.methods() == ["lookup_post_id"]


def test_composite_lookup_id_contributes_post_part(fake_client):
    fake_client.lookup_result = "123_998877"
    resolver = PostReferenceResolver(fake_client, verify=False)

    ref = resolver.resolve("123", "https://facebook.com/page/posts/998877")

    assert ref.post_id == "998877"
    assert ref.object_story_id == "123_998877"


def test_lookup_failure_falls_back_to_patterns(fake_client):
    fake_client.failures["lookup_post_id"] = MetaAPIError("lookup failed", timeout=True)
    resolver = PostReferenceResolver(fake_client, verify=False)

    ref = resolver.resolve("123", "https://facebook.com/permalink.php?story_fbid=42&id=123")

    assert ref.post_id == "42"
    assert ref.source == "pattern"


def test_empty_lookup_falls_back_to_patterns(fake_client):
    resolver = PostReferenceResolver(fake_client, verify=False)
    ref = resolver.resolve("123", "https://facebook.com/page/posts/998877")
    assert ref.source == "pattern"
    assert ref.object_story_id == "123_998877"


def test_unparseable_url_raises(fake_client):
    resolver = PostReferenceResolver(fake_client, verify=True)

    with pytest.raises(ResolutionError) as exc_info:
        resolver.resolve("123", "https://facebook.com/pizzaria")

    assert exc_info.value.reason == "unparseable URL"
    assert "get_post" not in fake_client.methods()


def test_verification_canonical_id_replaces_pfbid(fake_client):
    fake_client.post_data = {"id": "123_777888", "is_published": True}
    resolver = PostReferenceResolver(fake_client, verify=True)

    ref = resolver.resolve("123", "https://facebook.com/page/posts/pfbid0AbC")

    assert ref.object_story_id == "123_777888"
    assert ref.warnings == ()
    assert ("get_post", "user-token", ("123_pfbid0AbC",)) in fake_client.calls


def test_verification_permission_error_is_a_warning(fake_client):
    fake_client.failures["get_post"] = MetaAPIError(
        "no access", error_code=10, http_status=400
    )
    resolver = PostReferenceResolver(fake_client, verify=True)

    ref = resolver.resolve("123", "https://facebook.com/page/posts/998877")

    assert ref.object_story_id == "123_998877"
    assert len(ref.warnings) == 1
    assert "permission denied" in ref.warnings[0]


def test_verification_other_failure_is_a_warning(fake_client):
    fake_client.failures["get_post"] = MetaAPIError("boom", error_code=1, http_status=500)
    resolver = PostReferenceResolver(fake_client, verify=True)

    ref = resolver.resolve("123", "https://facebook.com/page/posts/998877")

    assert ref.object_story_id == "123_998877"
    assert "could not be verified" in ref.warnings[0]


def test_unpublished_post_is_a_warning(fake_client):
    fake_client.post_data = {"id": "123_998877", "is_published": False}
    resolver = PostReferenceResolver(fake_client, verify=True)

    ref = resolver.resolve("123", "https://facebook.com/page/posts/998877")

    assert ref.warnings == ("post is not published",)


def test_verification_can_be_disabled(fake_client):
    resolver = PostReferenceResolver(fake_client, verify=False)
    resolver.resolve("123", "https://facebook.com/page/posts/998877")
    assert "get_post" not in fake_client.methods()
