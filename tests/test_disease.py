import asyncio
import base64
import random

import aiohttp
import pytest

from agroloop.services.ai_config import AIConfig
from agroloop.services.disease import (
    LOCAL_DISEASES,
    LOCAL_SERVICE,
    PLANTNET_SERVICE,
    DiseaseAdvisoryClient,
    calculate_severity,
    get_recommendations,
    get_treatment_options,
    is_disease_related,
    load_image,
)
from agroloop.services.outcomes import Ok, VendorError, VendorUnavailable
from conftest import plantnet_match, plantnet_session, png_bytes

WITH_KEY = AIConfig(plantnet_api_key="pn-key")


def classify(client, image_ref):
    return asyncio.run(client.classify(image_ref))


def expected_local(seed):
    rng = random.Random(seed)
    disease = rng.choice(LOCAL_DISEASES)
    confidence = rng.random() * 0.3 + 0.7
    return disease, round(confidence * 100), confidence > 0.8, calculate_severity(confidence)


def test_detected_disease_from_confident_match(image_file):
    factory = plantnet_session(plantnet_match(0.93, ["Late blight"]))
    client = DiseaseAdvisoryClient(WITH_KEY, session_factory=factory)

    result = classify(client, image_file)

    assert result.detected is True
    assert result.disease_name == "Phytophthora infestans"
    assert result.confidence == 93
    assert result.severity == "high"
    assert result.ai_service == PLANTNET_SERVICE
    assert isinstance(result.outcome, Ok)
    assert result.treatment_options
    url, kwargs = factory.session.calls[0]
    assert url == "https://my-api.plantnet.org/v2/identify/all"
    assert kwargs["headers"] == {"Api-Key": "pn-key"}


def test_healthy_species_is_not_detected(image_file):
    factory = plantnet_session(plantnet_match(0.75, ["Tomato"], "Solanum lycopersicum"))
    result = classify(DiseaseAdvisoryClient(WITH_KEY, session_factory=factory), image_file)

    assert result.detected is False
    assert result.disease_name is None
    assert result.severity == "medium"
    assert result.description == "Healthy plant identified: Solanum lycopersicum"
    assert result.recommendations == []


@pytest.mark.parametrize("common_names", ["Leaf blight", [None, 7], None])
def test_odd_common_names_read_as_healthy(image_file, common_names):
    factory = plantnet_session(plantnet_match(0.91, common_names))
    result = classify(DiseaseAdvisoryClient(WITH_KEY, session_factory=factory), image_file)

    assert result.ai_service == PLANTNET_SERVICE
    assert result.detected is False


@pytest.mark.parametrize("factory", [
    plantnet_session(plantnet_match(0.42, ["Leaf spot"])),
    plantnet_session({"results": []}),
    plantnet_session({"results": ["oops"]}),
    plantnet_session({"results": [{"score": 0.95, "species": None}]}),
    plantnet_session({"results": "not a list"}),
    plantnet_session(status=503),
    plantnet_session(error=aiohttp.ClientConnectionError("network unreachable")),
    plantnet_session(error=asyncio.TimeoutError()),
])
def test_vendor_failures_fall_back_to_local_analysis(image_file, factory):
    client = DiseaseAdvisoryClient(WITH_KEY, session_factory=factory, rng=random.Random(1))

    result = classify(client, image_file)

    assert result.ai_service == LOCAL_SERVICE
    assert isinstance(result.outcome, VendorError)
    assert (result.disease_name, result.confidence, result.detected, result.severity) == expected_local(1)


def test_without_key_vendor_is_never_called(image_file):
    factory = plantnet_session(plantnet_match(0.99, ["Rust"]))
    result = classify(DiseaseAdvisoryClient(AIConfig(), session_factory=factory), image_file)

    assert isinstance(result.outcome, VendorUnavailable)
    assert result.ai_service == LOCAL_SERVICE
    assert factory.session.calls == []


@pytest.mark.parametrize("image_ref", ["/no/such/file.jpg", "data:image/png;base64,!!!", "", None, 12])
def test_any_image_reference_yields_a_result(image_ref):
    client = DiseaseAdvisoryClient(WITH_KEY, session_factory=plantnet_session(plantnet_match(0.9, ["Rust"])))

    result = classify(client, image_ref)

    assert result.ai_service == LOCAL_SERVICE
    assert isinstance(result.outcome, VendorError)
    assert result.processing_time >= 0


def test_local_analysis_uses_lookup_tables():
    client = DiseaseAdvisoryClient(AIConfig(), rng=random.Random(5))

    result = client.local_analysis("leaf.jpg")

    assert (result.disease_name, result.confidence, result.detected, result.severity) == expected_local(5)
    assert result.recommendations == get_recommendations(result.disease_name)
    assert result.treatment_options == get_treatment_options(result.disease_name)


def test_load_image_accepts_data_uri():
    data = png_bytes()
    uri = "data:image/png;base64," + base64.b64encode(data).decode()

    assert load_image(uri) == (data, "image/png")


def test_keyword_and_severity_helpers():
    assert is_disease_related(["Southern Corn Leaf Blight"])
    assert is_disease_related(["TOBACCO MOSAIC"])
    assert not is_disease_related(["Sweet basil", "Tomato"])
    assert [calculate_severity(s) for s in (0.95, 0.9, 0.8, 0.7, 0.5)] == ["high", "high", "medium", "medium", "low"]
    assert get_recommendations("Unknown Disease")[0] == "Consult with agricultural expert"


def test_connection_probe_reports_vendor_service():
    ok = DiseaseAdvisoryClient(WITH_KEY, session_factory=plantnet_session(plantnet_match(0.9, ["Basil"])))
    down = DiseaseAdvisoryClient(WITH_KEY, session_factory=plantnet_session(status=500))

    assert asyncio.run(ok.test_connection()) is True
    assert asyncio.run(down.test_connection()) is False
