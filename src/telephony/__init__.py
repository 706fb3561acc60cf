"""Asterisk Manager Interface call monitoring.

The package tracks live channels and bridges from the AMI event stream and
issues control commands over the same connection:
AMI socket -> ingestion thread -> event queue -> consumer -> CallStateStore.
"""
