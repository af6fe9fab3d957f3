"""End-to-end tests for the HTTP service with fake models."""
import base64
import io

import numpy as np
import pytest
from fastapi.testclient import TestClient
from PIL import Image

import main
from product_studio.core.backend import Backend, BackendSelector
from product_studio.core.imaging import to_data_url
from product_studio.core.model_manager import ModelKind, ModelManager

from conftest import failing_loader, fake_loaders


def decode(data_url: str) -> Image.Image:
    payload = data_url.split(",", 1)[1]
    return Image.open(io.BytesIO(base64.b64decode(payload)))


@pytest.fixture
def loaders():
    return fake_loaders()


@pytest.fixture
def client(monkeypatch, loaders):
    selector = BackendSelector(availability=lambda b: b is Backend.WASM)
    monkeypatch.setattr(main, "build_model_manager", lambda: ModelManager(selector, loaders=loaders))
    with TestClient(main.app) as test_client:
        yield test_client


@pytest.fixture
def image_url(product_image):
    return to_data_url(product_image)


class TestServiceInfo:
    """Test informational endpoints."""

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert "process" in response.json()["endpoints"]

    def test_health(self, client):
        body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["backend_configured"] is True
        assert body["backend"] == "wasm"
        assert body["device"] == "cpu"
        assert body["models_loaded"] == []

    def test_presets(self, client):
        presets = client.get("/backgrounds/presets").json()

        assert [p["id"] for p in presets] == ["white", "gradient-blue", "outdoor", "blur"]
        assert presets[0]["background"] == {"color": "#FFFFFF", "kind": "color"}


class TestBackendEndpoint:
    """Test switching the performance profile."""

    def test_fallback_is_reported(self, client):
        body = client.post("/backend", json={"backend": "gpu", "precision": "low"}).json()

        assert body["backend"] == "wasm"
        assert body["requested"] == "gpu"
        assert body["fell_back"] is True
        assert body["reduced_precision"] is True
        assert len(body["warnings"]) == 1

    def test_profile_applies_to_new_loads(self, client):
        client.post("/backend", json={"backend": "wasm", "precision": "high"})
        assert main.pipeline.profile.precision.value == "high"
        assert main.detector.profile.precision.value == "high"

    def test_unknown_backend_rejected(self, client):
        assert client.post("/backend", json={"backend": "tpu"}).status_code == 422


class TestImageEndpoints:
    """Test segmentation and compositing endpoints."""

    def test_segment(self, client, image_url):
        response = client.post("/segment", json={
            "image": image_url, "model_kind": "fast", "threshold": 0.5, "edge_blur": 0,
        })
        body = response.json()

        assert response.status_code == 200
        assert (body["width"], body["height"]) == (64, 64)
        assert body["model_kind"] == "fast"
        assert body["foreground_ratio"] == pytest.approx(0.25)
        assert decode(body["image"]).getpixel((32, 32)) == (255, 255, 255, 255)

    def test_remove_background(self, client, image_url):
        body = client.post("/remove-background", json={
            "image": image_url, "model_kind": "general", "background_color": "transparent",
        }).json()

        result = decode(body["image"])
        assert result.mode == "RGBA"
        assert result.getpixel((0, 0))[3] == 0
        assert result.getpixel((32, 32)) == (255, 0, 0, 255)

    def test_auto_crop(self, client, image_url):
        body = client.post("/auto-crop", json={"image": image_url, "model_kind": "B", "padding": 0}).json()
        assert (body["width"], body["height"]) == (32, 32)

    def test_replace_background(self, client, image_url):
        body = client.post("/replace-background", json={
            "image": image_url,
            "model_kind": "general",
            "background": {"kind": "gradient", "colors": ["#000000", "#000000"], "direction": "to right"},
        }).json()

        result = np.array(decode(body["image"]))
        assert result[0, 0].tolist() == [0, 0, 0, 255]
        assert result[32, 32].tolist() == [255, 0, 0, 255]

    def test_models_are_cached_between_requests(self, client, image_url):
        for _ in range(2):
            client.post("/auto-crop", json={"image": image_url, "model_kind": "body"})

        assert main.model_manager.load_counts[ModelKind.BODY] == 1
        assert client.get("/health").json()["models_loaded"] == ["body"]

        assert client.delete("/models").json() == {"status": "cleared"}
        assert client.get("/health").json()["models_loaded"] == []


class TestProcessEndpoint:
    """Test the full pipeline endpoint."""

    def test_process(self, client, image_url):
        response = client.post("/process", json={
            "id": "job-7",
            "image": image_url,
            "model_kind": "fast",
            "threshold": 0.5,
            "padding": 0,
            "product_type": "toys",
            "product_name": "robot",
        })
        body = response.json()

        assert response.status_code == 200
        assert body["id"] == "job-7"
        assert body["crop_box"] == [16, 16, 48, 48]
        assert (body["width"], body["height"]) == (32, 32)
        assert "uploaded robot" in body["prompt"]

    def test_unknown_prompt_key(self, client, image_url):
        response = client.post("/process", json={
            "image": image_url, "model_kind": "fast", "prompt_values": {"mood": "calm"},
        })
        assert response.status_code == 400


class TestClassifyEndpoints:
    """Test category detection endpoints."""

    def test_classify(self, client, image_url):
        body = client.post("/classify", json={"image": image_url, "confidence_threshold": 0.1}).json()

        assert body["best_category"] == "clothing"
        assert body["best_confidence"] == pytest.approx(0.4, abs=1e-5)
        assert [a["category"] for a in body["alternatives"]] == ["electronics"]
        assert body["suggested_name"] == "Jersey"

    def test_batch_with_bad_item(self, client, image_url):
        body = client.post("/classify/batch", json={
            "images": [image_url, "data:image/png;base64,AAAA", image_url],
        }).json()

        assert body["results"][0]["best_category"] == "clothing"
        assert body["results"][1] is None
        assert body["results"][2]["best_category"] == "clothing"
        assert [f["index"] for f in body["failures"]] == [1]

    def test_empty_batch_rejected(self, client):
        assert client.post("/classify/batch", json={"images": []}).status_code == 422


class TestErrors:
    """Test error mapping to HTTP status codes."""

    def test_undecodable_image(self, client):
        response = client.post("/segment", json={"image": "data:image/png;base64,AAAA"})

        assert response.status_code == 400
        assert response.json()["role"] == "source"

    def test_bad_background_image(self, client, image_url):
        response = client.post("/replace-background", json={
            "image": image_url, "background": {"kind": "image", "source": "data:image/png;base64,AAAA"},
        })

        assert response.status_code == 400
        assert response.json()["role"] == "background"

    def test_unknown_background_kind(self, client, image_url):
        response = client.post("/replace-background", json={"image": image_url, "background": {"kind": "plaid"}})
        assert response.status_code == 400

    def test_malformed_image_anchor(self, client, image_url):
        response = client.post("/replace-background", json={
            "image": image_url, "background": {"kind": "image", "source": image_url, "anchor": [0.5]},
        })
        assert response.status_code == 400

    def test_unknown_model_kind(self, client, image_url):
        assert client.post("/segment", json={"image": image_url, "model_kind": "classifier"}).status_code == 400

    def test_threshold_out_of_range(self, client, image_url):
        assert client.post("/segment", json={"image": image_url, "threshold": 1.5}).status_code == 422

    def test_model_load_failure(self, monkeypatch, loaders, image_url):
        loaders[ModelKind.BODY] = failing_loader("checkpoint missing")
        selector = BackendSelector(availability=lambda b: b is Backend.WASM)
        monkeypatch.setattr(main, "build_model_manager", lambda: ModelManager(selector, loaders=loaders))

        with TestClient(main.app) as client:
            response = client.post("/segment", json={"image": image_url, "model_kind": "body"})

        assert response.status_code == 503
        assert response.json()["model_kind"] == "body"
        assert "checkpoint missing" in response.json()["detail"]


class TestLocalFileSources:
    """Server-side files are never readable through the API."""

    @pytest.fixture
    def private_file(self, product_image, tmp_path):
        path = tmp_path / "server_private.png"
        product_image.save(path)
        return str(path)

    def test_source_path_rejected(self, client, private_file):
        response = client.post("/auto-crop", json={"image": private_file, "model_kind": "fast"})

        assert response.status_code == 400
        assert response.json()["role"] == "source"
        assert main.model_manager.loaded_kinds() == []

    def test_background_path_rejected(self, client, image_url, private_file):
        response = client.post("/replace-background", json={
            "image": image_url, "model_kind": "fast", "background": {"kind": "image", "source": private_file},
        })

        assert response.status_code == 400
        assert response.json()["role"] == "background"

    def test_blur_source_path_rejected(self, client, image_url, private_file):
        response = client.post("/process", json={
            "image": image_url, "model_kind": "fast", "background": {"kind": "blur", "source": private_file},
        })

        assert response.status_code == 400
        assert response.json()["role"] == "original"

    def test_batch_item_path_fails_alone(self, client, image_url, private_file):
        body = client.post("/classify/batch", json={"images": [private_file, image_url]}).json()

        assert body["results"][0] is None
        assert body["results"][1]["best_category"] == "clothing"
