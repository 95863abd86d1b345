"""Capture, rotation and decoding helpers."""
