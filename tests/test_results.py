"""
p2pcheck/tests/test_results.py

Unit tests for result records and their JSON shape.
"""

import json

from p2pcheck.results import NO_PROVIDERS, IdentifyResult, ProviderLookupResult


class TestIdentifyResult:
    """Test IdentifyResult serialization and outcome labels."""

    def test_empty_result_serializes_to_empty_object(self):
        assert IdentifyResult().to_dict() == {}

    def test_unset_fields_are_omitted(self):
        result = IdentifyResult(connect_to_peer_error="dial backoff")

        assert result.to_dict() == {"connect_to_peer_error": "dial backoff"}

    def test_zero_ping_duration_is_kept(self):
        result = IdentifyResult(ping_duration_ms=0, protocols=[], addresses=[])

        data = result.to_dict()
        assert data["ping_duration_ms"] == 0
        assert data["protocols"] == []
        assert data["addresses"] == []

    def test_lists_are_copied(self):
        protocols = ["/ipfs/id/1.0.0"]
        data = IdentifyResult(protocols=protocols).to_dict()

        data["protocols"].append("/ipfs/kad/1.0.0")
        assert protocols == ["/ipfs/id/1.0.0"]

    def test_json_round_trip(self):
        result = IdentifyResult(
            ping_duration_ms=12,
            protocols=["/ipfs/ping/1.0.0"],
            addresses=["/ip4/1.2.3.4/tcp/4001"],
        )
        assert json.loads(json.dumps(result.to_dict())) == result.to_dict()

    def test_outcome(self):
        assert IdentifyResult().outcome == "ok"
        assert IdentifyResult(parse_address_error="x").outcome == "parse_error"
        assert IdentifyResult(connect_to_peer_error="x").outcome == "connect_error"
        assert IdentifyResult(ping_error="x").outcome == "ping_error"
        assert IdentifyResult(identify_peer_error="x").outcome == "identify_error"


class TestProviderLookupResult:
    """Test ProviderLookupResult serialization and outcome labels."""

    def test_no_providers_keeps_empty_list(self):
        result = ProviderLookupResult(providers_error=NO_PROVIDERS, providers=[])

        assert result.to_dict() == {"providers_error": NO_PROVIDERS, "providers": []}
        assert result.outcome == "no_providers"

    def test_parse_error_only(self):
        result = ProviderLookupResult(parse_cid_error="invalid cid")

        assert result.to_dict() == {"parse_cid_error": "invalid cid"}
        assert result.outcome == "parse_error"

    def test_lookup_error(self):
        assert ProviderLookupResult(find_providers_error="x").outcome == "lookup_error"

    def test_ok(self):
        result = ProviderLookupResult(providers=["QmPeer"])
        assert result.outcome == "ok"
        assert result.to_dict() == {"providers": ["QmPeer"]}
