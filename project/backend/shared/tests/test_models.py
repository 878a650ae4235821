"""
Tests for data models.
"""

import pytest
from pydantic import ValidationError
from uuid import uuid4

from shared.models import Job, Prediction, Scene, Script


def _scene(n, **kwargs):
    return {"scene_number": n, "duration": 5, "generation_prompt": f"shot {n}", **kwargs}


class TestScene:
    def test_scene_requires_prompt(self):
        with pytest.raises(ValidationError):
            Scene(scene_number=1, duration=5, generation_prompt="   ")

    def test_scene_number_is_one_based(self):
        with pytest.raises(ValidationError):
            Scene(scene_number=0, duration=5, generation_prompt="a")

    def test_descriptive_attributes_pass_through(self):
        scene = Scene(**_scene(1, lighting="golden hour", camera_move="dolly in"))

        assert scene.lighting == "golden hour"
        assert scene.camera_move == "dolly in"
        assert scene.start_image_url is None


class TestScript:
    def test_contiguous_scenes_accepted(self):
        script = Script(title="Ad", total_duration=15, scenes=[_scene(1), _scene(2), _scene(3)])

        assert [s.scene_number for s in script.scenes] == [1, 2, 3]
        assert script.audio_spec.enable_audio is True

    def test_gap_in_scene_numbers_rejected(self):
        with pytest.raises(ValidationError, match="incorrect scene_number"):
            Script(title="Ad", total_duration=10, scenes=[_scene(1), _scene(3)])

    def test_empty_scenes_rejected(self):
        with pytest.raises(ValidationError, match="at least one scene"):
            Script(title="Ad", total_duration=10, scenes=[])


class TestJob:
    def test_defaults(self):
        job = Job(user_id=uuid4(), prompt="sparkling water ad")

        assert job.status == "pending"
        assert job.progress == 0
        assert job.scene_video_urls == []
        assert job.scene_version(1) == 1

    def test_image_override_priority(self):
        job = Job(
            user_id=uuid4(),
            prompt="p",
            start_image_url="https://img/start.jpg",
            product_image_url="https://img/product.jpg",
            scene_image_overrides={2: "https://img/two.jpg"},
        )

        assert job.image_override(1, 3) == "https://img/start.jpg"
        assert job.image_override(2, 3) == "https://img/two.jpg"
        assert job.image_override(3, 3) == "https://img/product.jpg"

    def test_no_override_without_caller_images(self):
        job = Job(user_id=uuid4(), prompt="p")

        assert all(job.image_override(n, 3) is None for n in (1, 2, 3))

    def test_serializes_ids_and_dates_as_strings(self):
        job = Job(user_id=uuid4(), prompt="p")

        data = job.model_dump(mode="json")

        assert data["id"] == str(job.id)
        assert isinstance(data["created_at"], str)
        assert data["completed_at"] is None

    def test_scene_versions_keys_coerced_from_json(self):
        job = Job.model_validate({"user_id": str(uuid4()), "prompt": "p", "scene_versions": {"2": 3}})

        assert job.scene_version(2) == 3


class TestPrediction:
    @pytest.mark.parametrize("status,terminal", [
        ("queued", False),
        ("processing", False),
        ("succeeded", True),
        ("failed", True),
        ("canceled", True),
    ])
    def test_is_terminal(self, status, terminal):
        assert Prediction(id="p1", status=status).is_terminal is terminal
