"""meshcall - 룸 기반 P2P 화상통화 시그널링 서버 및 피어 세션 코어"""

__version__ = "0.1.0"
