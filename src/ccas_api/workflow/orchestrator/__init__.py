"""Workflow operations composing the repositories, state machine and notifier."""
