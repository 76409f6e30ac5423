from config import AppSettings


def test_no_log_file_unless_configured(monkeypatch):
    monkeypatch.delenv("LOG_FILE", raising=False)
    assert AppSettings().log_file is None


def test_log_file_from_environment(monkeypatch):
    monkeypatch.setenv("LOG_FILE", "logs/api.log")
    assert AppSettings().log_file == "logs/api.log"
