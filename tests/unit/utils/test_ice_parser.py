"""ICECandidateParser 단위 테스트"""

from meshcall.utils.ice_parser import ICECandidateParser


class TestICECandidateParser:
    """ICECandidateParser.parse() / serialize() 테스트"""

    def test_parse_host_candidate_success(self):
        """host 타입 ICE candidate 파싱 성공"""
        # Given: 브라우저 형식 host candidate
        candidate = {
            "candidate": "candidate:842163049 1 udp 2122260223 192.168.1.100 54321 typ host generation 0",
            "sdpMid": "0",
            "sdpMLineIndex": 0,
        }

        # When
        result = ICECandidateParser.parse(candidate)

        # Then
        assert result is not None
        assert result.foundation == "842163049"
        assert result.component == 1
        assert result.protocol == "udp"
        assert result.priority == 2122260223
        assert result.ip == "192.168.1.100"
        assert result.port == 54321
        assert result.type == "host"
        assert result.sdpMid == "0"
        assert result.sdpMLineIndex == 0

    def test_parse_srflx_candidate_with_raddr_rport(self):
        """srflx 타입 (raddr/rport 포함) 파싱"""
        candidate = {
            "candidate": "candidate:1234567890 1 udp 1685987071 203.0.113.50 12345 typ srflx raddr 192.168.1.100 rport 54321",
            "sdpMid": "audio",
            "sdpMLineIndex": 0,
        }

        result = ICECandidateParser.parse(candidate)

        assert result is not None
        assert result.type == "srflx"
        assert result.relatedAddress == "192.168.1.100"
        assert result.relatedPort == 54321

    def test_parse_without_prefix(self):
        """candidate: 접두사가 없어도 파싱"""
        candidate = {"candidate": "1 1 UDP 2122260223 10.0.0.1 5000 typ host", "sdpMid": "0"}

        result = ICECandidateParser.parse(candidate)

        assert result is not None
        assert result.protocol == "udp"

    def test_parse_invalid_format_returns_none(self):
        """필드 수가 부족하면 None"""
        assert ICECandidateParser.parse({"candidate": "candidate:1 1 udp"}) is None
        assert ICECandidateParser.parse({"candidate": "candidate:a b c d e f g h"}) is None

    def test_end_of_candidates(self):
        assert ICECandidateParser.is_end_of_candidates({"candidate": ""})
        assert ICECandidateParser.is_end_of_candidates({})
        assert not ICECandidateParser.is_end_of_candidates({"candidate": "candidate:1"})

    def test_serialize_keeps_sdp_fields(self):
        candidate = {
            "candidate": "candidate:842163049 1 udp 2122260223 192.168.1.100 54321 typ host",
            "sdpMid": "0",
            "sdpMLineIndex": 0,
        }

        serialized = ICECandidateParser.serialize(ICECandidateParser.parse(candidate))

        assert serialized["candidate"].startswith("candidate:842163049 1 udp 2122260223 192.168.1.100 54321 typ host")
        assert serialized["sdpMid"] == "0"
        assert serialized["sdpMLineIndex"] == 0
