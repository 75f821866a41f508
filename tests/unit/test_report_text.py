"""Tests for the plain-text presence report."""
from inclinefit.analysis.presence import analyse_messages
from inclinefit.analysis.report_text import format_presence_report
from inclinefit.synthesis.rewriter import inject_messages
from inclinefit.synthesis.track import SynthesisParameters

from conftest import make_record


class TestFormatPresenceReport:
    def test_sections_in_order(self, treadmill_messages):
        text = format_presence_report(analyse_messages(treadmill_messages), "run.fit")
        titles = [
            "Message Type Counts",
            "ACTIVITY Message Analysis",
            "RECORD Message Analysis",
            "SESSION Message Analysis",
            "LAP Message Analysis",
            "GAP Field Check Summary",
            "EVENT Message Summary",
            "Developer Fields Summary",
            "RAW RECORD FIELD DUMPS",
        ]
        positions = [text.index(t) for t in titles]
        assert positions == sorted(positions)
        assert text.startswith("Analysing file: run.fit")
        assert "Analysis complete for: run.fit" in text

    def test_not_ready_verdict_and_alerts(self, treadmill_messages):
        text = format_presence_report(analyse_messages(treadmill_messages))
        assert "Likely GAP Ready?     : NO" in text
        assert "USER_ALERT:: Lap 0 is missing Enhanced Avg Speed!" in text
        assert "  with Enh. Speed     : 0 (0.0%)" in text

    def test_ready_after_injection(self, treadmill_messages):
        out = inject_messages(treadmill_messages, SynthesisParameters(0.0, 0.0)).messages
        text = format_presence_report(analyse_messages(out))
        assert "Likely GAP Ready?     : YES" in text
        assert "  RECORD   | enhanced_speed     | 11 (100%)" in text
        assert "USER_ALERT" not in text

    def test_empty_sections(self):
        text = format_presence_report(analyse_messages([make_record(0, 0.0)]))
        assert "(No ACTIVITY message found)" in text
        assert "(No SESSION message found)" in text
        assert "(No LAP messages found)" in text
        assert "(No EVENT messages found)" in text
        assert "(No Developer Fields found)" in text
        assert "SESSION  | (No Session Msg)" in text

    def test_hidden_record_count(self, treadmill_messages):
        text = format_presence_report(analyse_messages(treadmill_messages, record_dump_count=5))
        assert "RECORD[4]" in text
        assert "RECORD[5]" not in text
        assert "... (6 more records not shown)" in text
