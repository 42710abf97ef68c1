"""
Test suite for the Telehealth Signaling Service.

Contains unit tests for the session registry and signaling relay, and
integration tests for the REST and WebSocket endpoints.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
