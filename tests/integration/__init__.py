"""Integration tests for the touch tracker.

These tests drive the acquisition coordinator end to end:
- Sensor report -> warp -> tracking -> frame dispatch
- Calibration sessions and persistence
"""
