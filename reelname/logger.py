"""
Minimal logging context for ReelName.
Single place to control all output: screen + file, with flush.
"""
import json
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.text import Text

_PREFIX_STYLES = (
    ("[INFO] ", "cyan"),
    ("[WARNING] ", "yellow"),
    ("[ERROR] ", "red"),
)
_OUTCOME_STYLES = (
    ("matched", "green"),
    ("ambiguous", "yellow"),
    ("completed", "green"),
    ("failed", "red"),
)


class ReelNameLogger:
    """Minimal logger: print to screen + file, always flush"""

    def __init__(self, log_file: Optional[Path] = None, debug: bool = False):
        self.log_file = log_file
        self._file_handle = None
        self._start_time = datetime.now()
        self.debug_mode = debug
        self._rate_limit_note_services: set[str] = set()
        self._console = Console(highlight=False)

        if log_file:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            self._file_handle = open(log_file, "a", buffering=1, encoding="utf-8")
            from reelname.__version__ import __version__

            self._write_file(f"({self._start_time.strftime('%H:%M:%S')}  Started ReelName {__version__})")

    def _screen_text(self, line: str) -> Text:
        text = Text(line)
        for prefix, style in _PREFIX_STYLES:
            start = line.find(prefix)
            if start != -1:
                text.stylize(style, start, start + len(prefix) - 1)
        if line.startswith("   "):
            for word, style in _OUTCOME_STYLES:
                start = line.find(f" {word}")
                if start != -1:
                    text.stylize(style, start + 1, start + 1 + len(word))
                    break
        return text

    def _write_file(self, output: str) -> None:
        if self._file_handle:
            self._file_handle.write(output + "\n")
            self._file_handle.flush()
            os.fsync(self._file_handle.fileno())

    def log(self, msg: str, prefix: str = ""):
        """Log to screen and file"""
        output = f"{prefix}{msg}" if prefix else msg
        self._console.print(self._screen_text(output))
        self._write_file(output)

    def info(self, msg: str):
        """Info message"""
        self.log(msg, "[INFO] ")

    def warning(self, msg: str):
        """Warning message"""
        self.log(msg, "[WARNING] ")

    def error(self, msg: str):
        """Error message"""
        self.log(msg, "[ERROR] ")

    def debug(self, msg: str):
        """Debug message (only shown in debug mode)"""
        if self.debug_mode:
            timestamp = datetime.now().strftime('%H:%M:%S.%f')[:-3]
            self.log(msg, f"[{timestamp}] [DEBUG] ")

    def api_wait(self, service: str, seconds: float):
        """Log API rate limiting wait, once per service"""
        _ = seconds
        service_key = service.upper()
        if service_key in self._rate_limit_note_services:
            return
        self._rate_limit_note_services.add(service_key)
        self.info(f"API rate limiting active for {service_key}; request pacing is enabled.")

    def api_wait_debug(self, service: str, seconds: float):
        """Log API wait details (debug mode only)."""
        self.debug(f"Rate limiting detail: waiting {seconds:.3f}s before next {service} API call")

    def api_request(self, method: str, url: str, params: dict):
        """Log API request (debug mode only)"""
        if self.debug_mode:
            safe_params = {k: v for k, v in params.items() if k != "api_key"}
            self.debug(f"API Request: {method} {url}")
            if safe_params:
                self.debug(f"  Params: {json.dumps(safe_params, sort_keys=True)}")

    def api_response(self, status: int, data: dict, elapsed_ms: float):
        """Log API response (debug mode only)"""
        if self.debug_mode:
            self.debug(f"API Response ({elapsed_ms:.0f}ms): Status {status}")
            if data:
                data_str = json.dumps(data, indent=2)
                if len(data_str) > 5000:
                    data_str = data_str[:5000] + "\n  ... (truncated)"
                self.debug(f"  Data: {data_str}")

    def match_outcome(self, group_id: int, title: str, status: str, confidence: Optional[float]):
        """Per-group result of a match attempt"""
        score = "n/a" if confidence is None else f"{confidence:.3f}"
        self.log(f"   Group #{group_id} '{title}' {status} (confidence {score})")

    def transfer_started(self, file_id: int, destination: str):
        self.debug(f"Transfer started: file #{file_id} -> {destination}")

    def transfer_completed(self, file_id: int, destination_path: str):
        self.log(f"   File #{file_id} completed -> {destination_path}")

    def transfer_failed(self, file_id: int, message: str):
        self.log(f"   File #{file_id} failed: {message}")

    def close(self):
        """Close file handle with goodbye message"""
        if self._file_handle:
            end_time = datetime.now()
            elapsed = end_time - self._start_time
            self._write_file(
                f"({end_time.strftime('%H:%M:%S')}  Ended session, elapsed {elapsed.total_seconds():.1f}s)"
            )
            self._file_handle.close()
            self._file_handle = None

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


# Global instance (set by the CLI)
_logger: Optional[ReelNameLogger] = None


def set_logger(logger: ReelNameLogger):
    """Set global logger instance"""
    global _logger
    _logger = logger


def get_logger() -> ReelNameLogger:
    """Get global logger instance"""
    global _logger
    if _logger is None:
        # Fallback: create stdout-only logger
        _logger = ReelNameLogger()
    return _logger


# Convenience functions
def log(msg: str):
    get_logger().log(msg)


def info(msg: str):
    get_logger().info(msg)


def warning(msg: str):
    get_logger().warning(msg)


def error(msg: str):
    get_logger().error(msg)


def debug(msg: str):
    get_logger().debug(msg)
