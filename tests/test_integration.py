"""Integration tests: real API calls, no mocks. Requires .env with at least one provider key."""

import os
from pathlib import Path

import pytest
from dotenv import load_dotenv

load_dotenv()

# Skip entire module if no provider key is set
_AVAILABLE_KEYS = [
    k for k in ["DEEPSEEK_API_KEY", "QWEN_API_KEY", "OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GEMINI_API_KEY"]
    if os.environ.get(k, "").strip()
]
pytestmark = pytest.mark.integration

if not _AVAILABLE_KEYS:
    pytestmark = pytest.mark.skip(reason="Need at least one provider API key")


async def test_full_session_pipeline(tmp_path: Path, session_input):
    """Run a real quick-depth session with the available providers, verify no crash."""
    from config.config_loader import load_config
    from roundtable.discussion_log import DiscussionLog
    from roundtable.errors import QuorumError
    from roundtable.output import save_to_file
    from roundtable.router import build_router
    from roundtable.session import RoundtableSession

    config = load_config()
    config.roundtable.default_depth = "quick"
    config.roundtable.role_timeout_sec = 90
    config.roundtable.chairman_timeout_sec = 90
    router = build_router(config)
    assert router.provider_names(), "No providers could be built"

    log = DiscussionLog(tmp_path / "roundtable.db")
    session = RoundtableSession.from_config(config.roundtable, router, discussion_log=log)

    try:
        result = await session.run(session_input)
    except QuorumError as exc:
        pytest.fail(f"Quorum not met with live providers: {exc}")

    assert result.symbol == session_input.market.symbol
    assert len(result.round1) >= config.roundtable.quorum
    assert result.round2 is None
    assert {t.status for t in result.timings} <= {"ok", "failed", "timeout"}
    assert log.get(result.session_id) is not None

    saved = save_to_file(result, tmp_path / "output")
    content = saved.read_text(encoding="utf-8")
    assert "# Roundtable:" in content
    assert "## Decision:" in content
    log.close()
