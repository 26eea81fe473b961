"""Tests for field-level option checks."""

import pytest

from apiserver_preflight.config import ServerRunOptions, parse_cidr, parse_port_range
from apiserver_preflight.config.options import NetworkRange
from apiserver_preflight.validator import ErrorKind
from apiserver_preflight.validator.fields import (
    check_apiserver_count,
    check_cluster_ip_range,
    check_proxy_cidr_whitelist,
    check_service_node_port,
)


class TestApiserverCount:
    """Tests for --apiserver-count."""

    @pytest.mark.parametrize("count", [0, -1, -100])
    def test_non_positive_count_is_one_error(self, count):
        """Zero or negative counts produce exactly one out-of-range error."""
        errors = check_apiserver_count(ServerRunOptions(apiserver_count=count))

        assert [e.kind for e in errors] == [ErrorKind.OUT_OF_RANGE]
        assert f"'{count}'" in errors[0].message

    def test_positive_count_passes(self):
        assert check_apiserver_count(ServerRunOptions(apiserver_count=1)) == []


class TestProxyCIDRWhitelist:
    """Tests for --proxy-cidr-whitelist."""

    def test_empty_whitelist_passes(self):
        """An empty whitelist disables the feature and is valid."""
        assert check_proxy_cidr_whitelist(ServerRunOptions(proxy_cidr_whitelist=[])) == []

    def test_one_malformed_entry_among_valid(self):
        """Only the malformed entry is reported."""
        whitelist = [parse_cidr(c) for c in ("10.0.0.0/8", "bogus", "fd00::/8", "172.16.0.0/12")]
        errors = check_proxy_cidr_whitelist(ServerRunOptions(proxy_cidr_whitelist=whitelist))

        assert [e.kind for e in errors] == [ErrorKind.MALFORMED]
        assert "bogus" in errors[0].message

    def test_each_malformed_entry_reported(self):
        """Two bad entries give two errors."""
        whitelist = [parse_cidr("10.0.0.1"), parse_cidr("300.0.0.0/8")]
        errors = check_proxy_cidr_whitelist(ServerRunOptions(proxy_cidr_whitelist=whitelist))
        assert len(errors) == 2


class TestClusterIPRange:
    """Tests for --service-cluster-ip-range."""

    def test_absent_range_is_missing_only(self):
        """A missing range is reported as missing and never as too large."""
        errors = check_cluster_ip_range(ServerRunOptions(service_cluster_ip_range=None))
        assert [e.kind for e in errors] == [ErrorKind.MISSING]

    def test_unparseable_range_is_malformed_only(self):
        """Text that is not a CIDR is malformed, not missing, and is quoted back."""
        errors = check_cluster_ip_range(
            ServerRunOptions(service_cluster_ip_range=NetworkRange(raw="garbage"))
        )
        assert [e.kind for e in errors] == [ErrorKind.MALFORMED]
        assert "garbage" in errors[0].message

    def test_twenty_host_bits_allowed(self):
        """Exactly 2^20 addresses is the largest accepted range."""
        errors = check_cluster_ip_range(
            ServerRunOptions(service_cluster_ip_range=parse_cidr("10.96.0.0/12"))
        )
        assert errors == []

    def test_over_twenty_host_bits_rejected(self):
        errors = check_cluster_ip_range(
            ServerRunOptions(service_cluster_ip_range=parse_cidr("10.0.0.0/11"))
        )
        assert [e.kind for e in errors] == [ErrorKind.OUT_OF_RANGE]

    def test_ipv6_range_size(self):
        """Host bits are measured against the address family width."""
        ok = check_cluster_ip_range(ServerRunOptions(service_cluster_ip_range=parse_cidr("fd00::/108")))
        too_big = check_cluster_ip_range(ServerRunOptions(service_cluster_ip_range=parse_cidr("fd00::/64")))

        assert ok == []
        assert [e.kind for e in too_big] == [ErrorKind.OUT_OF_RANGE]


class TestServiceNodePort:
    """Tests for --kubernetes-service-node-port."""

    def test_zero_port_never_errors(self):
        """0 disables the node port, even when the allowed range is empty."""
        options = ServerRunOptions(
            kubernetes_service_node_port=0,
            service_node_port_range=parse_port_range(""),
        )
        assert check_service_node_port(options) == []

    def test_port_above_65535_is_one_error(self):
        """An impossible port is reported once, not also as outside the range."""
        errors = check_service_node_port(ServerRunOptions(kubernetes_service_node_port=70000))

        assert [e.kind for e in errors] == [ErrorKind.OUT_OF_RANGE]
        assert "between 0 and 65535" in errors[0].message

    def test_negative_port(self):
        errors = check_service_node_port(ServerRunOptions(kubernetes_service_node_port=-1))
        assert [e.kind for e in errors] == [ErrorKind.OUT_OF_RANGE]

    def test_port_outside_allowed_range(self):
        """A valid port outside --service-node-port-range is reported."""
        errors = check_service_node_port(ServerRunOptions(kubernetes_service_node_port=8080))

        assert [e.kind for e in errors] == [ErrorKind.OUT_OF_RANGE]
        assert "30000-32767" in errors[0].message

    def test_port_inside_allowed_range(self):
        options = ServerRunOptions(kubernetes_service_node_port=30443)
        assert check_service_node_port(options) == []

    def test_empty_allowed_range_is_named_in_message(self):
        """A port checked against an empty range says the range is empty."""
        options = ServerRunOptions(
            kubernetes_service_node_port=30001,
            service_node_port_range=parse_port_range(""),
        )
        errors = check_service_node_port(options)

        assert [e.kind for e in errors] == [ErrorKind.OUT_OF_RANGE]
        assert "range <empty> doesn't contain 30001" in errors[0].message
