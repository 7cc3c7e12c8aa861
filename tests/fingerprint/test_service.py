# SPDX-License-Identifier: MIT
"""Tests for end-to-end fingerprint resolution."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from fingerprint.errors import InvalidInput, StoreUnavailable
from fingerprint.matching import MatchResolver, MergeEngine, SimilarityScorer
from fingerprint.models import Observation, SimilarityWeights
from fingerprint.service import FingerprintService, validate_observation
from fingerprint.store import ProfileStore

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _service(store, clock=lambda: T0) -> FingerprintService:
    scorer = SimilarityScorer(SimilarityWeights())
    return FingerprintService(
        store=store,
        scorer=scorer,
        resolver=MatchResolver(scorer),
        merger=MergeEngine(),
        clock=clock,
    )


class TestValidation:
    """Test observation validation."""

    def test_complete_observation(self, make_observation):
        """A complete observation passes."""
        validate_observation(make_observation())

    def test_missing_groups_listed(self):
        """Every missing requirement is reported."""
        with pytest.raises(InvalidInput) as exc_info:
            validate_observation(Observation(visitor_token=" "))
        assert len(exc_info.value.details) == 4

    def test_invalid_input_before_store_access(self, mocker, make_observation):
        """Invalid observations never reach the store."""
        store = mocker.MagicMock(spec=ProfileStore)

        with pytest.raises(InvalidInput):
            _service(store).handle(make_observation(device=None))

        store.find_latest_by_visitor_token.assert_not_called()
        store.query_any.assert_not_called()
        store.save.assert_not_called()


class TestResolution:
    """Test matching and creation against a real store."""

    def test_identical_observation_matches(self, store, make_observation, make_profile):
        """An identical observation merges into the stored profile."""
        store.save(make_profile(observation_count=5))

        outcome = _service(store, clock=lambda: T0 + timedelta(minutes=1)).handle(make_observation())

        assert outcome.matched
        assert outcome.score == pytest.approx(1.0)
        assert outcome.matched_device_id == "profile-1"
        assert outcome.profile.observation_count == 6
        assert outcome.profile.ip_history == ["1.1.1.1"]

        stored = store.find_latest_by_visitor_token("v1")
        assert stored.observation_count == 6
        assert stored.updated_at == T0 + timedelta(minutes=1)

    def test_unknown_device_created(self, store, make_observation, make_profile, browser, network, certificate):
        """Nothing sharing a lookup key gives a new profile."""
        store.save(make_profile())
        incoming = make_observation(
            visitor_token="v2",
            browser=replace(browser, canvas_fingerprint="canvas-other"),
            network=replace(network, ip_address="8.8.8.8"),
            certificate=replace(certificate, fingerprints=("sha256:cert-z",)),
        )

        outcome = _service(store).handle(incoming)

        assert not outcome.matched
        assert outcome.score == 0.0
        assert outcome.matched_device_id is None
        assert outcome.profile.observation_count == 1
        assert outcome.profile.similarity_score == 1.0
        assert outcome.profile.id != "profile-1"
        assert store.find_latest_by_visitor_token("v2").id == outcome.profile.id

    def test_below_threshold_creates_new(self, store, make_observation, make_profile, device):
        """A candidate that is too different does not absorb the observation."""
        store.save(make_profile())
        incoming = make_observation(
            visitor_token="v3",
            device=replace(device, platform="iPhone", cpu_cores=6, device_memory=4),
        )

        outcome = _service(store).handle(incoming)

        assert not outcome.matched
        assert store.find_latest_by_visitor_token("v1").observation_count == 1

    def test_repeat_visits_accumulate(self, store, make_observation):
        """The second visit of a new device matches the profile created by the first."""
        service = _service(store)
        first = service.handle(make_observation(visitor_token="v4"))
        second = service.handle(make_observation(visitor_token="v4"))

        assert not first.matched
        assert second.matched
        assert second.profile.id == first.profile.id
        assert second.profile.observation_count == 2

    def test_store_failure_propagates(self, mocker, make_observation):
        """Store errors surface to the caller unchanged."""
        store = mocker.MagicMock(spec=ProfileStore)
        store.find_latest_by_visitor_token.side_effect = StoreUnavailable("down")

        with pytest.raises(StoreUnavailable):
            _service(store).handle(make_observation())

        store.save.assert_not_called()

    def test_built_from_settings(self, fingerprint_service, make_observation):
        """The settings-built service resolves with default weights."""
        assert fingerprint_service.resolver.threshold == 0.95
        assert not fingerprint_service.handle(make_observation()).matched
