"""Relay services: recorder, engines, trigger relay, live streams, scheduler."""
