import json

import numpy as np
import pytest

from votecheck_biometrics.data_models import EnrolledTemplate
from votecheck_biometrics.exceptions import TemplateNotFoundError, TemplateStoreError
from votecheck_biometrics.storage import InMemoryTemplateStore, JsonTemplateStore


def make_template(user_id="voter-1", landmarks=None):
    return EnrolledTemplate(
        user_id=user_id,
        embedding=np.linspace(-1.0, 1.0, 16),
        landmarks=landmarks,
        quality=0.82,
        samples_count=7,
    )


@pytest.fixture(params=["memory", "json"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryTemplateStore()
    return JsonTemplateStore(tmp_path / "nested" / "templates.json")


def test_fetch_unknown_user_raises(store):
    with pytest.raises(TemplateNotFoundError):
        store.fetch("missing")


def test_store_then_fetch(store):
    template = make_template(landmarks=[0.1, 0.2, 0.3, 0.4])
    store.store("voter-1", template)

    fetched = store.fetch("voter-1")

    np.testing.assert_allclose(fetched.embedding, template.embedding)
    np.testing.assert_allclose(fetched.landmarks, template.landmarks)
    assert fetched.quality == 0.82
    assert fetched.samples_count == 7
    assert fetched.created_at == template.created_at
    assert store.user_ids() == ["voter-1"]


def test_store_overwrites_previous_template(store):
    store.store("voter-1", make_template())
    replacement = EnrolledTemplate(user_id="voter-1", embedding=[1.0, 2.0])
    store.store("voter-1", replacement)

    assert store.fetch("voter-1").embedding.tolist() == [1.0, 2.0]


def test_store_rejects_mismatched_user(store):
    with pytest.raises(TemplateStoreError):
        store.store("voter-2", make_template("voter-1"))


def test_json_store_persists_across_instances(tmp_path):
    path = tmp_path / "templates.json"
    JsonTemplateStore(path).store("voter-1", make_template())

    assert JsonTemplateStore(path).fetch("voter-1").samples_count == 7
    assert json.loads(path.read_text(encoding="utf-8"))["voter-1"]["user_id"] == "voter-1"
    assert not path.with_suffix(".json.tmp").exists()


def test_json_store_reports_corrupted_file(tmp_path):
    path = tmp_path / "templates.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(TemplateStoreError):
        JsonTemplateStore(path).fetch("voter-1")


def test_json_store_reports_corrupted_template(tmp_path):
    path = tmp_path / "templates.json"
    path.write_text(json.dumps({"voter-1": {"user_id": "voter-1"}}), encoding="utf-8")

    with pytest.raises(TemplateStoreError, match="corrupted"):
        JsonTemplateStore(path).fetch("voter-1")
