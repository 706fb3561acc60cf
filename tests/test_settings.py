from __future__ import annotations

from config.settings import Settings


def test_comma_separated_rule_lists_from_env(monkeypatch):
    monkeypatch.setenv("INBOUND_CONTEXTS", "from-pstn, from-did ,")
    monkeypatch.setenv("OUTBOUND_PREFIXES", "PJSIP/carrier")
    monkeypatch.setenv("AMI_PORT", "5039")

    settings = Settings()

    assert settings.inbound_contexts == ["from-pstn", "from-did"]
    assert settings.outbound_prefixes == ["PJSIP/carrier"]
    assert settings.ami_port == 5039


def test_defaults_match_stock_dialplan():
    settings = Settings()

    assert settings.ami_port == 5038
    assert settings.supervisor_context == "supervisor-monitor"
    assert settings.supervisor_prefix == "*55"
    assert settings.supervisor_endpoint is None
    assert "from-external" in settings.inbound_contexts
