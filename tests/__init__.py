"""Test suite for comms-orchestrator engines, tools and CLI."""
