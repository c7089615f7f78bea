"""
Debug logging of highlight decisions during a reading session.

Creates two log files:
- highlights.log: Highlight moves with the spoken word that caused them
- transcripts.log: Final transcript fragments as they are confirmed

Logging is disabled by default. Call enable() to turn it on.
"""

from datetime import datetime
from pathlib import Path

# Log files location (in the working directory)
LOG_DIR: Path = Path.cwd() / "logs"
HIGHLIGHT_LOG: Path = LOG_DIR / "highlights.log"
TRANSCRIPT_LOG: Path = LOG_DIR / "transcripts.log"

# Global flag to control whether debug logging is enabled
_ENABLED: bool = False  # pylint: disable=invalid-name


def enable(log_dir: Path | None = None) -> None:
    """Enable debug logging, optionally into a different directory."""
    global _ENABLED, LOG_DIR, HIGHLIGHT_LOG, TRANSCRIPT_LOG  # pylint: disable=global-statement
    if log_dir is not None:
        LOG_DIR = Path(log_dir)
        HIGHLIGHT_LOG = LOG_DIR / "highlights.log"
        TRANSCRIPT_LOG = LOG_DIR / "transcripts.log"
    _ENABLED = True


def disable() -> None:
    """Disable debug logging."""
    global _ENABLED  # pylint: disable=global-statement
    _ENABLED = False


def is_enabled() -> bool:
    """Check if debug logging is enabled."""
    return _ENABLED


def _ensure_log_dir() -> None:
    """Create log directory if it doesn't exist."""
    LOG_DIR.mkdir(parents=True, exist_ok=True)


def _timestamp() -> str:
    """Get current timestamp."""
    return datetime.now().strftime("%H:%M:%S.%f")[:-3]


def clear_logs() -> None:
    """Clear both log files for a fresh reading session."""
    if not _ENABLED:
        return
    _ensure_log_dir()
    for log_file in (HIGHLIGHT_LOG, TRANSCRIPT_LOG):
        with open(log_file, 'w', encoding='utf-8') as f:
            f.write(
                f"=== New session started at {datetime.now().isoformat()} ===\n\n")


def log_highlight(old_index: int, new_index: int, word: str, spoken: str, reason: str) -> None:
    """
    Log a highlight move.

    Args:
        old_index: Previously highlighted position (-1 if none)
        new_index: Newly highlighted position
        word: The reference word at new_index
        spoken: The spoken word that matched it
        reason: Which event caused the move (interim, final)
    """
    if not _ENABLED:
        return
    _ensure_log_dir()
    with open(HIGHLIGHT_LOG, 'a', encoding='utf-8') as f:
        f.write(
            f"[{_timestamp()}] {reason:8} {old_index:4d} -> {new_index:4d} "
            f"word=\"{word}\" spoken=\"{spoken}\"\n")


def log_transcript(transcript: str, new_text: str) -> None:
    """Log the accumulated transcript and the fragment just confirmed."""
    if not _ENABLED:
        return
    _ensure_log_dir()
    with open(TRANSCRIPT_LOG, 'a', encoding='utf-8') as f:
        f.write(
            f"[{_timestamp()}] final: \"{new_text}\" transcript: \"{transcript[-60:]}\"\n")
