"""Tests for persisted asset stores."""

import pytest

from jax_robot_model.errors import AssetNotFound, AssetUnavailable
from jax_robot_model.io import AssetKey, AssetVariant, FileAssetStore, InMemoryAssetStore


@pytest.fixture(params=["file", "memory"])
def store(request, tmp_path):
    if request.param == "file":
        return FileAssetStore(tmp_path)
    return InMemoryAssetStore()


def test_save_and_load(store):
    key = AssetKey("arm", "cubes")
    assert not store.exists(key)

    store.save(key, '{"a": 1}')
    assert store.exists(key)
    assert store.load(key) == '{"a": 1}'

    store.save(key, '{"a": 2}')
    assert store.load(key) == '{"a": 2}'


def test_variants_are_separate_entries(store):
    current = AssetKey("arm", "cubes", AssetVariant.CURRENT)
    permanent = AssetKey("arm", "cubes", AssetVariant.PERMANENT)
    store.save(current, "current")
    assert not store.exists(permanent)
    store.save(permanent, "permanent")
    assert store.load(current) == "current"
    assert store.load(permanent) == "permanent"


def test_missing_entry(store):
    with pytest.raises(AssetNotFound):
        store.load(AssetKey("arm", "sphere_subcomponents"))


def test_file_layout(tmp_path):
    store = FileAssetStore(tmp_path)
    key = AssetKey("arm", "cubes", AssetVariant.PERMANENT)
    store.save(key, "{}")
    expected = tmp_path / "robots" / "arm" / "shape_geometry" / "cubes.permanent.json"
    assert store.path_for(key) == expected
    assert expected.read_text() == "{}"


def test_unwritable_root(tmp_path):
    blocker = tmp_path / "not_a_directory"
    blocker.write_text("")
    store = FileAssetStore(blocker)
    with pytest.raises(AssetUnavailable):
        store.save(AssetKey("arm", "cubes"), "{}")
