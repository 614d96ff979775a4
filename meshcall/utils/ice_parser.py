"""ICE candidate 변환 유틸리티"""

import logging
from typing import Any

from aiortc import RTCIceCandidate
from aiortc.sdp import candidate_from_sdp, candidate_to_sdp

logger = logging.getLogger(__name__)

CANDIDATE_PREFIX = "candidate:"


class ICECandidateParser:
    """브라우저 RTCIceCandidateInit dict <-> aiortc RTCIceCandidate 변환"""

    @staticmethod
    def is_end_of_candidates(candidate: dict[str, Any]) -> bool:
        """빈 candidate 문자열은 end-of-candidates 표시"""
        return not candidate.get("candidate")

    @staticmethod
    def parse(candidate: dict[str, Any]) -> RTCIceCandidate | None:
        """브라우저 형식 candidate를 aiortc RTCIceCandidate로 파싱

        Args:
            candidate: {"candidate": "candidate:... typ host ...",
                        "sdpMid": "0", "sdpMLineIndex": 0}

        Returns:
            RTCIceCandidate 또는 None (형식이 잘못된 경우)
        """
        line = candidate.get("candidate") or ""
        if line.startswith(CANDIDATE_PREFIX):
            line = line[len(CANDIDATE_PREFIX):]

        # foundation component protocol priority ip port typ type [raddr X rport Y ...]
        if len(line.split()) < 8:
            logger.warning(f"Invalid candidate format: {line[:50]}")
            return None

        try:
            parsed = candidate_from_sdp(line)
        except (ValueError, IndexError, AssertionError) as e:
            logger.warning(f"Failed to parse candidate: {e}")
            return None

        parsed.protocol = parsed.protocol.lower()
        parsed.sdpMid = candidate.get("sdpMid")
        parsed.sdpMLineIndex = candidate.get("sdpMLineIndex")
        return parsed

    @staticmethod
    def serialize(candidate: RTCIceCandidate) -> dict[str, Any]:
        """aiortc RTCIceCandidate를 브라우저 형식 dict로 변환"""
        return {
            "candidate": CANDIDATE_PREFIX + candidate_to_sdp(candidate),
            "sdpMid": candidate.sdpMid,
            "sdpMLineIndex": candidate.sdpMLineIndex,
        }
