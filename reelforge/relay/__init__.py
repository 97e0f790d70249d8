"""Authenticated relay for the video generation vendor"""

from .fal_relay import create_relay_app, run_relay

__all__ = ['create_relay_app', 'run_relay']
