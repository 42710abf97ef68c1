"""
Telehealth Signaling Service

A FastAPI-based service for video consultations: an in-memory registry of
consultation sessions and a WebSocket relay for WebRTC handshake messages.
"""

__version__ = "1.0.0"
