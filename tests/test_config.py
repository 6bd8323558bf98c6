from pathlib import Path

from legallens.config import API_KEY_ENV_KEYS, API_KEY_LIST_ENV, load_settings, resolve_api_keys


def clear_keys(monkeypatch):
    for name in (*API_KEY_ENV_KEYS, API_KEY_LIST_ENV):
        monkeypatch.delenv(name, raising=False)


def test_api_keys_are_ordered_and_deduplicated(monkeypatch):
    clear_keys(monkeypatch)
    monkeypatch.setenv("GEMINI_API_KEY", "alpha")
    monkeypatch.setenv("GEMINI_API_KEY2", "  beta ")
    monkeypatch.setenv("GEMINI_API_KEYS", "gamma, ,alpha,delta")

    assert resolve_api_keys() == ["alpha", "beta", "gamma", "delta"]


def test_defaults(monkeypatch):
    clear_keys(monkeypatch)
    for name in ("GEMINI_MODEL", "LLM_TIMEOUT_SECONDS", "LLM_TEMPERATURE", "STORE_BACKEND", "STORE_DIR"):
        monkeypatch.delenv(name, raising=False)

    settings = load_settings()

    assert settings.api_keys == []
    assert settings.model == "gemini-1.5-flash"
    assert settings.timeout_seconds == 60.0
    assert settings.generation.temperature == 0.7
    assert settings.generation.top_k == 40
    assert settings.generation.max_output_tokens == 2048
    assert settings.store_backend == "memory"
    assert settings.store_dir == Path("data")


def test_invalid_numbers_fall_back_with_warning(monkeypatch, caplog):
    monkeypatch.setenv("LLM_TOP_K", "many")
    monkeypatch.setenv("LLM_TIMEOUT_SECONDS", "soon")
    monkeypatch.setenv("STORE_BACKEND", "redis")

    settings = load_settings()

    assert settings.generation.top_k == 40
    assert settings.timeout_seconds == 60.0
    assert settings.store_backend == "memory"
    assert "Invalid integer for LLM_TOP_K" in caplog.text


def test_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("GEMINI_BASE_URL", "https://proxy.test/v1/")
    monkeypatch.setenv("CHAT_CONTEXT_CHUNKS", "3")
    monkeypatch.setenv("STORE_BACKEND", "FILE")
    monkeypatch.setenv("STORE_DIR", str(tmp_path))

    settings = load_settings()

    assert settings.base_url == "https://proxy.test/v1"
    assert settings.chat_context_chunks == 3
    assert settings.store_backend == "file"
    assert settings.store_dir == tmp_path
