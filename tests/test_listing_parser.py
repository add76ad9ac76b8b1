"""
Tests for the iptables listing parser and extra column extraction.
"""
import pytest

from iptremote.exceptions import ParseError
from iptremote.parsers.listing import ListingParser, extract_extra_fields

from samples import LISTING_FILTER, LISTING_NAT


@pytest.fixture
def parser():
    return ListingParser()


def test_chains_in_header_order(parser):
    chains = parser.parse(LISTING_FILTER)
    assert [c.name for c in chains] == ["INPUT", "FORWARD", "OUTPUT"]
    assert [c.rule_count() for c in chains] == [3, 0, 1]


def test_rule_columns(parser):
    rule = parser.parse(LISTING_FILTER)[0].rules[0]
    assert rule.num == 1
    assert rule.packets == "120"
    assert rule.bytes == "9600"
    assert rule.target == "ACCEPT"
    assert rule.prot == "tcp"
    assert rule.opt == "--"
    assert rule.source == "0.0.0.0/0"
    assert rule.destination == "0.0.0.0/0"
    assert rule.extra == "tcp dpt:22"
    assert rule.dest_port == "22"
    assert rule.source_port is None


def test_rule_without_extra(parser):
    rule = parser.parse(LISTING_FILTER)[0].rules[1]
    assert rule.source == "10.0.0.0/8"
    assert rule.extra == ""
    assert rule.dest_port is None
    assert rule.to_destination is None


def test_port_range_and_source_port(parser):
    rule = parser.parse(LISTING_FILTER)[0].rules[2]
    assert rule.source_port == "53"
    assert rule.dest_port == "1024:65535"


def test_nat_destinations(parser):
    prerouting = parser.parse(LISTING_NAT)[0]
    first, second = prerouting.rules
    assert first.to_dest_ip == "192.168.127.70"
    assert first.to_dest_port == "9001"
    assert first.to_destination == "192.168.127.70:9001"
    assert second.to_dest_ip == "192.168.127.71"
    assert second.to_dest_port is None
    assert second.to_destination == "192.168.127.71"


def test_extra_whitespace_is_collapsed(parser):
    output = (
        "Chain INPUT (policy ACCEPT)\n"
        "1  0  0  ACCEPT  tcp  --  0.0.0.0/0  0.0.0.0/0   tcp    dpt:80\n"
    )
    rule = parser.parse(output)[0].rules[0]
    assert rule.extra == "tcp dpt:80"


def test_short_rule_lines_are_skipped(parser):
    output = (
        "Chain INPUT (policy ACCEPT)\n"
        "1  0  0  ACCEPT  tcp  --\n"
        "2  0  0  DROP    all  --  0.0.0.0/0  0.0.0.0/0\n"
        "Chain OUTPUT (policy ACCEPT)\n"
    )
    chains = parser.parse(output)
    assert [c.name for c in chains] == ["INPUT", "OUTPUT"]
    assert [r.num for r in chains[0].rules] == [2]


def test_rules_before_first_header_are_dropped(parser):
    output = (
        "1  0  0  ACCEPT  all  --  0.0.0.0/0  0.0.0.0/0\n"
        "Chain INPUT (policy ACCEPT)\n"
        "1  0  0  DROP    all  --  0.0.0.0/0  0.0.0.0/0\n"
    )
    chains = parser.parse(output)
    assert len(chains) == 1
    assert [r.target for r in chains[0].rules] == ["DROP"]


def test_unnamed_header_drops_rules_until_next_header(parser):
    output = (
        "Chain INPUT (policy ACCEPT)\n"
        "1  0  0  ACCEPT  all  --  0.0.0.0/0  0.0.0.0/0\n"
        "Chain\n"
        "1  0  0  DROP    all  --  0.0.0.0/0  0.0.0.0/0\n"
        "Chain OUTPUT (policy ACCEPT)\n"
        "1  0  0  RETURN  all  --  0.0.0.0/0  0.0.0.0/0\n"
    )
    chains = parser.parse(output)
    assert [c.name for c in chains] == ["INPUT", "OUTPUT"]
    assert [r.target for r in chains[0].rules] == ["ACCEPT"]
    assert [r.target for r in chains[1].rules] == ["RETURN"]


@pytest.mark.parametrize("output", ["", None, "iptables: command not found\n", "\n\n\n"])
def test_empty_or_unrecognized_input(parser, output):
    assert parser.parse(output) == []


def test_strict_mode_rejects_short_rule_lines():
    output = "Chain INPUT (policy ACCEPT)\n1  0  0  ACCEPT\n"
    with pytest.raises(ParseError) as exc_info:
        ListingParser(strict=True).parse(output)
    assert exc_info.value.line_number == 2


def test_to_dict_shape(parser):
    data = parser.parse(LISTING_NAT)[0].to_dict()
    assert data["chain"] == "PREROUTING"
    assert data["rules"][0]["to_destination"] == "192.168.127.70:9001"
    assert data["rules"][0]["num"] == 1


class TestExtractExtraFields:

    def test_dnat_with_port(self):
        fields = extract_extra_fields("tcp dpt:19070 to:192.168.127.70:9001")
        assert fields.dest_port == "19070"
        assert fields.to_dest_ip == "192.168.127.70"
        assert fields.to_dest_port == "9001"
        assert fields.to_destination == "192.168.127.70:9001"
        assert fields.source_port is None

    def test_port_range(self):
        fields = extract_extra_fields("udp dpts:5000:6000")
        assert fields.dest_port == "5000:6000"
        assert fields.to_dest_ip is None
        assert fields.to_dest_port is None
        assert fields.to_destination is None

    def test_source_port(self):
        fields = extract_extra_fields("udp spt:123")
        assert fields.source_port == "123"
        assert fields.dest_port is None

    @pytest.mark.parametrize("extra", ["", None])
    def test_empty(self, extra):
        fields = extract_extra_fields(extra)
        assert fields.to_dict() == {
            "source_port": None,
            "dest_port": None,
            "to_dest_ip": None,
            "to_dest_port": None,
            "to_destination": None,
        }

    def test_unrelated_text(self):
        fields = extract_extra_fields("state RELATED,ESTABLISHED")
        assert fields.dest_port is None
        assert fields.to_destination is None
