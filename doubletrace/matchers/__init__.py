"""Matchers that verify recorded calls after the fact."""

from doubletrace.matchers.have_received import HaveReceived, have_received

__all__ = ["HaveReceived", "have_received"]
