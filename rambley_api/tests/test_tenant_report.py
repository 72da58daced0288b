import pytest

from rambley_api.app.database import tenant_connection
from scripts import tenant_report


@pytest.fixture
def report_db(monkeypatch, engine, SessionTesting, tenants):
    monkeypatch.setattr(tenant_report, "SessionLocal", SessionTesting)
    monkeypatch.setattr(
        tenant_report,
        "tenant_connection",
        lambda identity: tenant_connection(identity, engine),
    )


def test_report_for_user_uses_home_account(report_db, capsys):
    assert tenant_report.main(["--user-id", "7"]) == 0
    out = capsys.readouterr().out
    assert "effective account (computed here): 3" in out
    assert "effective account (database):      3" in out
    assert any(line.split() == ["message_log", "1"] for line in out.splitlines())


def test_report_override(report_db, capsys):
    assert tenant_report.report(1, 7) == 0
    out = capsys.readouterr().out
    assert any(line.split() == ["message_log", "4"] for line in out.splitlines())
    assert any(line.split() == ["properties", "1"] for line in out.splitlines())


def test_report_without_identity_resolves_nothing(report_db, capsys):
    assert tenant_report.report(None, None) == 1
    assert tenant_report.report(None, 999) == 1
    assert "no account resolves" in capsys.readouterr().out
