"""Test configuration and fixtures for the identity broker."""

from tests.fixtures import *  # noqa: F401,F403
