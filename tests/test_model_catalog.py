"""Tests for the model catalog."""

import pytest

from gemini_relay.models import ModelCatalog, ModelFamily, ModelVersion, TaskKind
from gemini_relay.providers.types import RemoteModel
from gemini_relay.retry import RetryPolicy, TransientError

FAST_POLICY = RetryPolicy(max_attempts=3, initial_delay=0.001, max_delay=0.002)


def _family_without_caching_versions() -> ModelFamily:
    return ModelFamily(
        family_id="family-x",
        name="Family X",
        preferred_for_caching=True,
        versions=[
            ModelVersion(id="family-x-v1", name="X v1", supports_caching=False, is_preferred=True),
            ModelVersion(id="family-x-v2", name="X v2", supports_caching=False),
        ],
    )


class TestLookup:
    def test_list_available_serves_fallback(self):
        catalog = ModelCatalog()
        ids = [f.family_id for f in catalog.list_available()]
        assert ids == ["gemini-2.5-pro", "gemini-2.5-flash", "gemini-2.5-flash-lite"]

    def test_list_available_returns_copies(self):
        catalog = ModelCatalog()
        catalog.list_available()[0].versions.clear()
        assert catalog.list_available()[0].versions

    def test_version_id_resolves_to_owning_family(self):
        catalog = ModelCatalog()
        family = catalog.resolve_family_or_version("gemini-2.5-pro-exp-03-25")
        assert family.family_id == "gemini-2.5-pro"
        assert family.resolved_version.id == "gemini-2.5-pro-exp-03-25"

    def test_family_id_has_no_resolved_version(self):
        family = ModelCatalog().resolve_family_or_version("gemini-2.5-flash")
        assert family.family_id == "gemini-2.5-flash"
        assert family.resolved_version is None

    def test_unknown_id(self):
        catalog = ModelCatalog()
        assert catalog.resolve_family_or_version("gpt-4o") is None
        assert catalog.get_version("gpt-4o") is None

    def test_get_version(self):
        version = ModelCatalog().get_version("gemini-2.5-flash-preview-04-17")
        assert version.supports_caching is True
        assert version.is_preferred is False

    def test_every_version_maps_back_to_its_family(self):
        catalog = ModelCatalog()
        for family in catalog.list_available():
            for version in family.versions:
                assert catalog.resolve_family_or_version(version.id).family_id == family.family_id


class TestResolveToCallableVersion:
    def test_family_resolves_to_preferred_version(self):
        assert ModelCatalog().resolve_to_callable_version("gemini-2.5-pro") == "gemini-2.5-pro-preview-06-05"

    def test_version_unchanged(self):
        catalog = ModelCatalog()
        assert catalog.resolve_to_callable_version("gemini-2.5-pro-exp-03-25") == "gemini-2.5-pro-exp-03-25"

    def test_unknown_unchanged(self):
        assert ModelCatalog().resolve_to_callable_version("custom-model") == "custom-model"

    def test_first_version_when_none_preferred(self):
        catalog = ModelCatalog(
            families=[
                ModelFamily(
                    family_id="fam",
                    name="Fam",
                    versions=[ModelVersion(id="fam-a", name="A"), ModelVersion(id="fam-b", name="B")],
                )
            ]
        )
        assert catalog.resolve_to_callable_version("fam") == "fam-a"

    def test_family_without_versions_resolves_to_itself(self):
        catalog = ModelCatalog(families=[ModelFamily(family_id="bare", name="Bare")])
        assert catalog.resolve_to_callable_version("bare") == "bare"

    def test_idempotent(self):
        catalog = ModelCatalog()
        ids = ["custom-model"]
        for family in catalog.list_available():
            ids.append(family.family_id)
            ids.extend(v.id for v in family.versions)
        for model_id in ids:
            once = catalog.resolve_to_callable_version(model_id)
            assert catalog.resolve_to_callable_version(once) == once


class TestValidate:
    def test_known_ids(self):
        catalog = ModelCatalog()
        assert catalog.validate("gemini-2.5-pro") is None
        assert catalog.validate("gemini-2.5-flash-preview-05-20") is None

    @pytest.mark.parametrize("model_id", ["gemini-3.0-pro-preview-01-01", "gemini-exp-1206", "my-model-dev"])
    def test_preview_like_ids_accepted(self, model_id):
        assert ModelCatalog().validate(model_id) is None

    def test_unknown_id_warns_with_known_models(self):
        warning = ModelCatalog().validate("gpt-4o")
        assert "Unknown model ID: gpt-4o" in warning
        assert "gemini-2.5-pro" in warning
        assert "gemini-2.5-flash-lite-preview-06-17" in warning
        assert "attempt to use this model anyway" in warning


class TestPreferences:
    def test_thinking(self):
        assert ModelCatalog().select_preferred_for(TaskKind.THINKING).family_id == "gemini-2.5-pro"

    def test_search(self):
        assert ModelCatalog().select_preferred_for("search").family_id == "gemini-2.5-flash-lite"

    def test_caching_carries_first_caching_version(self):
        family = ModelCatalog().select_preferred_for(TaskKind.CACHING)
        assert family.family_id == "gemini-2.5-pro"
        assert family.resolved_version.id == "gemini-2.5-pro-preview-06-05"
        assert ModelCatalog().preferred_version_for(TaskKind.CACHING) == "gemini-2.5-pro-preview-06-05"

    def test_caching_family_without_caching_version_degrades(self):
        catalog = ModelCatalog(families=[_family_without_caching_versions()])
        family = catalog.select_preferred_for(TaskKind.CACHING)
        assert family.family_id == "family-x"
        assert family.resolved_version is None
        assert family.supports_caching is False
        assert catalog.preferred_version_for(TaskKind.CACHING) == "family-x-v1"

    def test_no_family_preferred(self):
        catalog = ModelCatalog(families=[ModelFamily(family_id="plain", name="Plain")])
        assert catalog.select_preferred_for(TaskKind.SEARCH) is None
        assert catalog.preferred_version_for(TaskKind.SEARCH) is None


class TestResolveCachingModel:
    def test_family_prefers_preferred_caching_version(self):
        assert ModelCatalog().resolve_caching_model("gemini-2.5-flash") == "gemini-2.5-flash-preview-05-20"

    def test_falls_back_to_first_caching_version(self):
        catalog = ModelCatalog(
            families=[
                ModelFamily(
                    family_id="fam",
                    name="Fam",
                    versions=[
                        ModelVersion(id="fam-new", name="New", supports_caching=False, is_preferred=True),
                        ModelVersion(id="fam-001", name="Stable", supports_caching=True),
                    ],
                )
            ]
        )
        assert catalog.resolve_caching_model("fam") == "fam-001"

    def test_family_without_caching_versions_uses_family_id(self):
        assert ModelCatalog().resolve_caching_model("gemini-2.5-flash-lite") == "gemini-2.5-flash-lite"

    def test_version_and_unknown_unchanged(self):
        catalog = ModelCatalog()
        assert catalog.resolve_caching_model("gemini-2.5-pro-exp-03-25") == "gemini-2.5-pro-exp-03-25"
        assert catalog.resolve_caching_model("custom-model") == "custom-model"


class TestRefresh:
    @pytest.mark.asyncio
    async def test_merges_remote_models(self, backend):
        backend.models = [
            RemoteModel(name="models/gemini-2.5-pro-preview-06-05"),
            RemoteModel(name="models/gemini-2.0-flash-001"),
            RemoteModel(name="models/gemini-2.0-flash"),
            RemoteModel(name="models/text-embedding-004"),
            RemoteModel(name="models/gemini-embedding-exp"),
        ]
        catalog = ModelCatalog()

        assert await catalog.refresh(backend, FAST_POLICY) is True
        assert catalog.refreshed_at is not None

        ids = [f.family_id for f in catalog.list_available()]
        assert ids == ["gemini-2.5-pro", "gemini-2.5-flash", "gemini-2.5-flash-lite", "gemini-2.0-flash"]
        flash = catalog.resolve_family_or_version("gemini-2.0-flash")
        assert flash.preferred_for_caching is True
        assert catalog.resolve_caching_model("gemini-2.0-flash") == "gemini-2.0-flash-001"

    @pytest.mark.asyncio
    async def test_failure_keeps_fallback(self, backend):
        backend.fail["list_models"] = [PermissionError("denied")]
        catalog = ModelCatalog()

        assert await catalog.refresh(backend, FAST_POLICY) is False
        assert len(catalog.list_available()) == 3
        assert catalog.refreshed_at is None

    @pytest.mark.asyncio
    async def test_failure_keeps_previous_registry(self, backend):
        catalog = ModelCatalog(families=[ModelFamily(family_id="kept", name="Kept")])
        backend.fail["list_models"] = [PermissionError("denied")]

        assert await catalog.refresh(backend, FAST_POLICY) is False
        assert [f.family_id for f in catalog.list_available()] == ["kept"]

    @pytest.mark.asyncio
    async def test_no_gemini_models(self, backend):
        backend.models = [RemoteModel(name="models/text-embedding-004")]
        assert await ModelCatalog().refresh(backend, FAST_POLICY) is False

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self, backend):
        backend.fail["list_models"] = [TransientError("unavailable")]
        backend.models = [RemoteModel(name="models/gemini-2.5-pro")]

        assert await ModelCatalog().refresh(backend, FAST_POLICY) is True
        assert backend.count("list_models") == 2
