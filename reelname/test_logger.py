from __future__ import annotations

from rich.text import Text

import reelname.logger as reel_logger


def test_api_wait_debug_drops_when_debug_disabled(monkeypatch):
    log = reel_logger.ReelNameLogger(debug=False)
    captured: list[tuple[str, str]] = []
    monkeypatch.setattr(log, "log", lambda msg, prefix="": captured.append((prefix, msg)))

    log.api_wait_debug("TMDB", 0.321)

    assert captured == []


def test_api_wait_debug_emits_when_debug_enabled(monkeypatch):
    log = reel_logger.ReelNameLogger(debug=True)
    captured: list[tuple[str, str]] = []
    monkeypatch.setattr(log, "log", lambda msg, prefix="": captured.append((prefix, msg)))

    log.api_wait_debug("TMDB", 1.234)

    assert len(captured) == 1
    prefix, msg = captured[0]
    assert "[DEBUG]" in prefix
    assert "1.234s" in msg
    assert "TMDB" in msg


def test_api_wait_logs_one_time_note_per_service(monkeypatch):
    log = reel_logger.ReelNameLogger(debug=False)
    captured: list[tuple[str, str]] = []
    monkeypatch.setattr(log, "log", lambda msg, prefix="": captured.append((prefix, msg)))

    log.api_wait("tmdb", 1.8)
    log.api_wait("TMDB", 2.2)

    assert captured == [
        ("[INFO] ", "API rate limiting active for TMDB; request pacing is enabled."),
    ]


def test_api_request_hides_api_key(monkeypatch):
    log = reel_logger.ReelNameLogger(debug=True)
    captured: list[str] = []
    monkeypatch.setattr(log, "log", lambda msg, prefix="": captured.append(msg))

    log.api_request("GET", "https://api.themoviedb.org/3/search/tv", {"api_key": "secret", "query": "Show"})

    joined = "\n".join(captured)
    assert "secret" not in joined
    assert '"query": "Show"' in joined


def test_screen_text_styles_prefixes_and_outcomes(monkeypatch):
    log = reel_logger.ReelNameLogger(debug=False)
    monkeypatch.setattr(log._console, "print", lambda *_args, **_kwargs: None)

    info = log._screen_text("[INFO] API rate limiting active for TMDB; request pacing is enabled.")
    matched = log._screen_text("   Group #1 'Show Name' matched (confidence 0.975)")
    failed = log._screen_text("   File #4 failed: disk full")
    plain = log._screen_text("Ingested 3 folders")

    assert any(span.style == "cyan" for span in info.spans)
    assert any(span.style == "green" for span in matched.spans)
    assert any(span.style == "red" for span in failed.spans)
    assert plain.spans == []


def test_screen_text_preserves_literal_brackets(monkeypatch):
    log = reel_logger.ReelNameLogger(debug=False)
    monkeypatch.setattr(log._console, "print", lambda *_args, **_kwargs: None)

    line = "[Group 1/2] [INFO] literal text should stay literal"
    rendered = log._screen_text(line)

    assert isinstance(rendered, Text)
    assert rendered.plain == line


def test_log_writes_plain_text_to_file(tmp_path, monkeypatch):
    out = tmp_path / "logs" / "reelname.log"
    log = reel_logger.ReelNameLogger(log_file=out, debug=False)
    monkeypatch.setattr(log._console, "print", lambda *_args, **_kwargs: None)

    log.transfer_failed(7, "[Errno 28] No space left on device")
    log.close()

    text = out.read_text(encoding="utf-8")
    assert "Started ReelName" in text
    assert "File #7 failed: [Errno 28] No space left on device" in text
    assert "Ended session" in text


def test_get_logger_returns_installed_instance():
    installed = reel_logger.ReelNameLogger(debug=False)
    reel_logger.set_logger(installed)

    assert reel_logger.get_logger() is installed
