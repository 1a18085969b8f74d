"""Tests for the four-stage campaign pipeline."""

import os

import pytest

from provisioner.platforms.base import PipelineState, Stage
from provisioner.platforms.exceptions import (
    ImageUploadError,
    ImageValidationError,
    MetaAPIError,
    PipelineError,
    ResolutionError,
    UpstreamError,
)
from provisioner.services.normalizer import normalize
from provisioner.services.pipeline import (
    CampaignPipeline,
    ad_params,
    ad_set_params,
    campaign_params,
)
from provisioner.services.post_resolver import PostReferenceResolver
from provisioner.tokens import TokenStore


def _pipeline(client, *, page_token=None, verify=False):
    return CampaignPipeline(
        client,
        TokenStore("user-token", page_token=page_token),
        resolver=PostReferenceResolver(client, verify=verify),
    )


def _params(client, method):
    return next(c[2][1] for c in client.calls if c[0] == method)


# ---------------------------------------------------------------------------
# Stage payloads
# ---------------------------------------------------------------------------


def test_campaign_params(base_form, image_file):
    request = normalize({**base_form, "imageFile": image_file, "objective": "CONVERSIONS"})
    assert campaign_params(request) == {
        "name": "Pizza Night",
        "objective": "OUTCOME_TRAFFIC",
        "status": "ACTIVE",
        "special_ad_categories": [],
    }


def test_ad_set_params_without_end_time(base_form, image_file):
    request = normalize({**base_form, "imageFile": image_file})
    params = ad_set_params(request, "cmp_1")

    assert params["name"] == "Pizza Night - Ad Set"
    assert params["campaign_id"] == "cmp_1"
    assert params["daily_budget"] == 10000
    assert params["billing_event"] == "IMPRESSIONS"
    assert params["optimization_goal"] == "LINK_CLICKS"
    assert params["bid_strategy"] == "LOWEST_COST_WITHOUT_CAP"
    assert params["targeting"] == {
        "geo_locations": {
            "custom_locations": [
                {
                    "latitude": -23.56,
                    "longitude": -46.64,
                    "radius": 5.0,
                    "distance_unit": "kilometer",
                }
            ]
        }
    }
    assert params["start_time"] == "2024-06-01T10:00:00"
    assert params["status"] == "ACTIVE"
    assert "end_time" not in params


def test_ad_set_params_with_end_time(base_form, image_file):
    request = normalize(
        {**base_form, "imageFile": image_file, "endDate": "2024-06-30T23:59:00"}
    )
    assert ad_set_params(request, "cmp_1")["end_time"] == "2024-06-30T23:59:00"


def test_ad_params(base_form, image_file):
    request = normalize({**base_form, "imageFile": image_file})
    assert ad_params(request, "adset_1", "creative_1") == {
        "name": "Pizza Night - Ad",
        "adset_id": "adset_1",
        "creative": {"creative_id": "creative_1"},
        "status": "ACTIVE",
    }


# ---------------------------------------------------------------------------
# Happy paths
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_image_pipeline_reaches_ad_created(fake_client, base_form, image_file):
    request = normalize({**base_form, "imageFile": image_file})

    result = await _pipeline(fake_client).provision(request)

    assert result.state == PipelineState.AD_CREATED
    assert result.failed_stage is None
    assert result.created_ids() == {
        "campaignId": "cmp_1",
        "adSetId": "adset_1",
        "creativeId": "creative_1",
        "adId": "ad_1",
    }
    assert result.image_hash == "img_hash_1"
    assert fake_client.methods() == [
        "create_campaign",
        "create_ad_set",
        "get_page_access_token",
        "upload_image",
        "create_ad_creative",
        "create_ad",
    ]
    assert not os.path.exists(image_file)


def test_creative_is_created_with_page_token(fake_client, base_form, image_file):
    request = normalize({**base_form, "imageFile": image_file})
    _pipeline(fake_client).run(request)

    tokens = {c[0]: c[1] for c in fake_client.calls}
    assert tokens["create_campaign"] == "user-token"
    assert tokens["upload_image"] == "user-token"
    assert tokens["create_ad_creative"] == "page-token"
    assert tokens["create_ad"] == "user-token"


def test_explicit_page_token_skips_lookup(fake_client, base_form, image_file):
    request = normalize({**base_form, "imageFile": image_file})
    _pipeline(fake_client, page_token="header-page-token").run(request)

    assert "get_page_access_token" not in fake_client.methods()
    creative_call = next(c for c in fake_client.calls if c[0] == "create_ad_creative")
    assert creative_call[1] == "header-page-token"


def test_missing_page_token_falls_back_to_user_token(fake_client, base_form, image_file):
    fake_client.page_token = None
    request = normalize({**base_form, "imageFile": image_file})
    _pipeline(fake_client).run(request)

    creative_call = next(c for c in fake_client.calls if c[0] == "create_ad_creative")
    assert creative_call[1] == "user-token"


def test_post_pipeline_uses_lookup(fake_client, base_form):
    fake_client.lookup_result = "998877"
    request = normalize({**base_form, "postUrl": "https://facebook.com/page/posts/998877"})

    result = _pipeline(fake_client).run(request)

    assert result.object_story_id == "123_998877"
    assert result.state == PipelineState.AD_CREATED
    assert _params(fake_client, "create_ad_creative") == {
        "name": "Pizza Night - Creative",
        "object_story_id": "123_998877",
    }
    assert "upload_image" not in fake_client.methods()


def test_post_verification_warnings_are_reported(fake_client, base_form):
    fake_client.failures["get_post"] = MetaAPIError("no access", error_code=200)
    request = normalize({**base_form, "postUrl": "https://facebook.com/page/posts/998877"})

    result = _pipeline(fake_client, verify=True).run(request)

    assert result.state == PipelineState.AD_CREATED
    assert len(result.warnings) == 1


def test_published_photo_pipeline(fake_client, base_form, image_file):
    request = normalize(
        {**base_form, "imageFile": image_file, "caption": "Fresh out of the oven"},
        kind="published_photo",
    )

    result = _pipeline(fake_client).run(request)

    assert result.object_story_id == "123_555000"
    methods = fake_client.methods()
    assert methods.index("create_ad_set") < methods.index("publish_photo")
    assert methods.index("publish_photo") < methods.index("create_ad_creative")
    assert not os.path.exists(image_file)


# ---------------------------------------------------------------------------
# Pre-flight failures: nothing is created
# ---------------------------------------------------------------------------


def test_unresolvable_post_creates_nothing(fake_client, base_form):
    request = normalize({**base_form, "postUrl": "https://facebook.com/pizzaria"})

    with pytest.raises(ResolutionError):
        _pipeline(fake_client).run(request)

    assert fake_client.methods() == ["lookup_post_id"]


def test_corrupt_image_creates_nothing(fake_client, base_form, tmp_path):
    path = tmp_path / "broken.png"
    path.write_bytes(b"garbage")
    request = normalize({**base_form, "imageFile": str(path)})

    with pytest.raises(ImageValidationError):
        _pipeline(fake_client).run(request)

    assert fake_client.calls == []


# ---------------------------------------------------------------------------
# Stage failures
# ---------------------------------------------------------------------------


def test_campaign_failure(fake_client, base_form, image_file):
    fake_client.failures["create_campaign"] = MetaAPIError(
        "Invalid parameter", error_code=100, http_status=400
    )
    request = normalize({**base_form, "imageFile": image_file})

    with pytest.raises(UpstreamError) as exc_info:
        _pipeline(fake_client).run(request)

    err = exc_info.value
    assert err.stage == "campaign"
    assert err.result.created_ids() == {}
    assert err.details["cause"]["error_code"] == 100


def test_adset_failure_reports_campaign_id_and_stops(fake_client, base_form, image_file):
    fake_client.failures["create_ad_set"] = MetaAPIError(
        "Invalid targeting", error_code=100, http_status=400, body={"error": {"code": 100}}
    )
    request = normalize({**base_form, "imageFile": image_file})

    with pytest.raises(UpstreamError) as exc_info:
        _pipeline(fake_client).run(request)

    err = exc_info.value
    assert err.stage == "adset"
    assert err.details["created_ids"] == {"campaignId": "cmp_1"}
    assert err.result.state == PipelineState.FAILED
    assert err.result.failed_stage == Stage.ADSET
    assert err.cause.body == {"error": {"code": 100}}
    assert fake_client.methods() == ["create_campaign", "create_ad_set"]


def test_creative_preparation_failure(fake_client, base_form, image_file):
    fake_client.failures["upload_image"] = ImageUploadError("upload rejected")
    request = normalize({**base_form, "imageFile": image_file})

    with pytest.raises(PipelineError) as exc_info:
        _pipeline(fake_client).run(request)

    err = exc_info.value
    assert not isinstance(err, UpstreamError)
    assert err.stage == "creative"
    assert isinstance(err.cause, ImageUploadError)
    assert err.result.created_ids() == {"campaignId": "cmp_1", "adSetId": "adset_1"}
    assert "create_ad_creative" not in fake_client.methods()
    assert not os.path.exists(image_file)


def test_ad_failure_reports_three_ids(fake_client, base_form, image_file):
    fake_client.failures["create_ad"] = MetaAPIError("timed out", timeout=True)
    request = normalize({**base_form, "imageFile": image_file})

    with pytest.raises(UpstreamError) as exc_info:
        _pipeline(fake_client).run(request)

    err = exc_info.value
    assert err.stage == "ad"
    assert err.cause.timeout is True
    assert err.result.created_ids() == {
        "campaignId": "cmp_1",
        "adSetId": "adset_1",
        "creativeId": "creative_1",
    }


def test_unexpected_error_keeps_created_ids(fake_client, base_form, image_file):
    fake_client.failures["create_ad"] = OSError("disk unavailable")
    request = normalize({**base_form, "imageFile": image_file})

    with pytest.raises(PipelineError) as exc_info:
        _pipeline(fake_client).run(request)

    err = exc_info.value
    assert not isinstance(err, UpstreamError)
    assert err.stage == "ad"
    assert err.cause.message == "disk unavailable"
    assert err.result.state == PipelineState.FAILED
    assert err.details["created_ids"] == {
        "campaignId": "cmp_1",
        "adSetId": "adset_1",
        "creativeId": "creative_1",
    }
