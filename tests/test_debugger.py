"""
Tests for the Debugger orchestrator.

Covers:
- Level resolution (explicit, from environment, unmapped environment)
- The gate
- Writer wiring from destination bits
- Line format end to end
- error() / fail() propagation
- Teardown email of the log file
- read_log, status
"""

import re

import pytest

from modular.config import DebuggerConfig
from modular.debugger.core import Debugger
from modular.debugger.digest import MessageCatalog
from modular.debugger.errors import ConfigurationError, EscalatedError, UnsafePathError
from modular.debugger.records import SEVERITIES, Facility
from modular.debugger.writers import EmailWriter, EventWriter, FileWriter, ScreenWriter, Writer
from modular.mail import MemoryTransport


LINE = re.compile(r"^\d{4}-\d{2}-\d{2}\t\d{2}:\d{2}:\d{2}\t(?P<label>.{6})\t(?P<source>[^\t]*)\t(?P<message>.*)\n$", re.S)


class RecordingWriter(Writer):
    def __init__(self, threshold=Facility.TRACE):
        super().__init__("recording", threshold)
        self.lines = []

    def write(self, line, level):
        self.lines.append(line)


class RecordingStore:
    def __init__(self):
        self.created = []

    def create(self, fields):
        self.created.append(fields)


@pytest.fixture
def config(tmp_path):
    return DebuggerConfig(base_path=str(tmp_path), cli=True)


def make(config, level=Facility.INFO, source="Importer", **kwargs):
    return Debugger(config, level, source, **kwargs)


# ═══════════════════════════════════════════════════════════════════
#  Level
# ═══════════════════════════════════════════════════════════════════

class TestLevel:
    def test_explicit_level(self, config):
        debugger = make(config, Facility.NOTICE)
        assert debugger.level == Facility.NOTICE

    def test_level_from_environment(self, tmp_path):
        config = DebuggerConfig(
            base_path=str(tmp_path),
            environment="test",
            environment_levels={"dev": "trace", "test": "notice", "live": "error"},
        )
        debugger = make(config, Facility.FROM_ENV)
        assert debugger.level == Facility.NOTICE

    def test_set_level_from_env_sentinel(self, config):
        debugger = make(config, Facility.TRACE)
        debugger.set_level(Facility.FROM_ENV)
        assert debugger.level == config.level_for("live")

    def test_unmapped_environment(self, config):
        debugger = make(config)
        with pytest.raises(ConfigurationError):
            debugger.env_level("staging")


# ═══════════════════════════════════════════════════════════════════
#  Gate
# ═══════════════════════════════════════════════════════════════════

class TestGate:
    @pytest.mark.parametrize("threshold", SEVERITIES)
    @pytest.mark.parametrize("level", SEVERITIES)
    def test_passes_iff_at_least_as_severe(self, config, level, threshold):
        debugger = make(config, threshold)
        assert bool(debugger.passes(level)) == (level <= threshold)

    def test_destination_bits_do_not_widen_threshold(self, config):
        # INFO|FILE is numerically 40, TRACE must still be suppressed
        debugger = make(config, Facility.INFO)
        debugger.set_level(Facility.INFO | Facility.FILE)
        assert not debugger.passes(Facility.TRACE)

    def test_no_severity_bit_never_passes(self, config):
        debugger = make(config, Facility.TRACE)
        assert not debugger.passes(Facility.FILE)

    def test_suppressed_call_returns_self(self, config):
        debugger = make(config, Facility.ERROR)
        writer = debugger.logger.add_writer(RecordingWriter())
        assert debugger.trace("quiet") is debugger
        assert writer.lines == []


# ═══════════════════════════════════════════════════════════════════
#  Writer wiring
# ═══════════════════════════════════════════════════════════════════

class TestInitialize:
    def test_no_destination_no_writers(self, config):
        assert make(config, Facility.INFO).logger.writers == []

    def test_file_and_screen(self, config):
        debugger = make(config, Facility.INFO | Facility.FILE | Facility.SCREEN)
        kinds = [type(w) for w in debugger.logger.writers]
        assert kinds == [FileWriter, ScreenWriter]
        assert all(w.threshold == Facility.INFO for w in debugger.logger.writers)
        debugger.close()

    def test_email_needs_recipient_and_transport(self, tmp_path):
        config = DebuggerConfig(base_path=str(tmp_path), email={"log_email": "ops@example.com"})
        assert make(config, Facility.INFO | Facility.EMAIL).logger.writers == []
        with_transport = make(config, Facility.INFO | Facility.EMAIL, transport=MemoryTransport())
        assert [type(w) for w in with_transport.logger.writers] == [EmailWriter]

    def test_email_without_recipient_skipped(self, config):
        debugger = make(config, Facility.INFO | Facility.EMAIL, transport=MemoryTransport())
        assert debugger.logger.writers == []

    def test_event_needs_store(self, config):
        assert make(config, Facility.INFO | Facility.EVENT).logger.writers == []
        store = RecordingStore()
        debugger = make(config, Facility.INFO | Facility.EVENT, event_store=store)
        assert [type(w) for w in debugger.logger.writers] == [EventWriter]
        assert "Start of logging at" in store.created[0]["body"]
        assert store.created[0]["source"] == "Importer"

    def test_disabled_writer_kind_skipped(self, tmp_path):
        config = DebuggerConfig(base_path=str(tmp_path), writers=["screen"])
        debugger = make(config, Facility.INFO | Facility.FILE | Facility.SCREEN)
        assert [type(w) for w in debugger.logger.writers] == [ScreenWriter]

    def test_reinitialize_clears_writers(self, config):
        debugger = make(config, Facility.INFO | Facility.SCREEN)
        debugger.initialize(Facility.WARN | Facility.SCREEN)
        assert len(debugger.logger.writers) == 1
        assert debugger.logger.writers[0].threshold == Facility.WARN

    def test_reinitialize_keeping_writers(self, config):
        debugger = make(config, Facility.INFO | Facility.SCREEN)
        debugger.initialize(Facility.WARN | Facility.SCREEN, clear_writers=False)
        assert len(debugger.logger.writers) == 2

    def test_truncate(self, tmp_path):
        config = DebuggerConfig(base_path=str(tmp_path), cli=True)
        first = make(config, Facility.INFO | Facility.FILE)
        first.info("from the first run")
        first.close()
        path = first.log_file_path

        second = make(config, Facility.INFO | Facility.FILE | Facility.TRUNCATE)
        second.close()
        assert "from the first run" not in path.read_text()

    def test_unsafe_log_path_raises(self, tmp_path):
        config = DebuggerConfig(
            base_path=str(tmp_path / "site"),
            log_file={"class_own_logs": {"Evil": "../../../evil.log"}},
        )
        with pytest.raises(UnsafePathError):
            make(config, Facility.INFO | Facility.FILE, source="Evil")

    def test_start_of_logging_written(self, config):
        debugger = make(config, Facility.INFO | Facility.FILE)
        lines = list(debugger.read_log())
        assert len(lines) == 1
        assert "Start of logging at" in lines[0]
        debugger.close()


# ═══════════════════════════════════════════════════════════════════
#  End to end
# ═══════════════════════════════════════════════════════════════════

class TestEndToEnd:
    def test_writer_threshold_filters(self, config):
        debugger = make(config, Facility.INFO)
        writer = debugger.logger.add_writer(RecordingWriter(), threshold=Facility.WARN)

        debugger.info("x")
        assert writer.lines == []

        debugger.warn("y")
        assert len(writer.lines) == 1
        match = LINE.match(writer.lines[0])
        assert match is not None
        assert match["label"] == "WARN  "
        assert match["source"] == "Importer"
        assert match["message"] == "y"

    def test_source_argument_overrides(self, config):
        debugger = make(config, Facility.INFO)
        writer = debugger.logger.add_writer(RecordingWriter())
        debugger.notice("hello", source="Exporter")
        assert LINE.match(writer.lines[0])["source"] == "Exporter"
        assert debugger.source == "Importer"

    def test_scoped_source_in_lines(self, config):
        debugger = make(config, Facility.INFO)
        writer = debugger.logger.add_writer(RecordingWriter())
        with debugger.scope("Importer.load"):
            debugger.info("inside")
        debugger.info("outside")
        assert [LINE.match(l)["source"] for l in writer.lines] == ["Importer.load", "Importer"]

    def test_html_break_outside_cli(self, tmp_path):
        config = DebuggerConfig(base_path=str(tmp_path), cli=False)
        debugger = make(config, Facility.INFO)
        writer = debugger.logger.add_writer(RecordingWriter())
        debugger.info("web")
        assert writer.lines[0].endswith("\tweb<br/>\n")

    def test_tokens_and_catalog(self, config):
        catalog = MessageCatalog({"Importer.RowsImported": "Imported {count} rows"})
        debugger = make(config, Facility.INFO, catalog=catalog)
        writer = debugger.logger.add_writer(RecordingWriter())
        debugger.info("rows imported", tokens={"count": 12})
        assert LINE.match(writer.lines[0])["message"] == "Imported 12 rows"

    def test_screen_output(self, config, capsys):
        debugger = make(config, Facility.WARN | Facility.SCREEN)
        debugger.info("hidden")
        debugger.error("shown")
        out = capsys.readouterr().out
        assert "hidden" not in out
        assert "ERROR \tImporter\tshown\n" in out

    def test_broken_writer_never_reaches_caller(self, config):
        class Broken(Writer):
            def write(self, line, level):
                raise RuntimeError("nope")

        debugger = make(config, Facility.INFO)
        debugger.logger.add_writer(Broken("broken", Facility.TRACE))
        writer = debugger.logger.add_writer(RecordingWriter())
        debugger.warn("still fine")
        assert len(writer.lines) == 1
        assert debugger.status()["failures"][0]["writer"] == "broken"


# ═══════════════════════════════════════════════════════════════════
#  error() / fail()
# ═══════════════════════════════════════════════════════════════════

class TestFail:
    def test_fail_with_message_returns(self, config):
        debugger = make(config, Facility.INFO)
        writer = debugger.logger.add_writer(RecordingWriter())
        assert debugger.fail("went wrong") is debugger
        assert LINE.match(writer.lines[0])["label"] == "ERROR "

    def test_fail_with_error_reraises_same_object(self, config):
        debugger = make(config, Facility.TRACE)
        writer = debugger.logger.add_writer(RecordingWriter())
        error = ValueError("bad row")

        with pytest.raises(ValueError) as excinfo:
            try:
                raise error
            except ValueError as e:
                debugger.fail(e)

        assert excinfo.value is error
        first = LINE.match(writer.lines[0])
        assert first["label"] == "ERROR "
        assert first["message"].startswith("bad row | file=")
        assert "line=" in first["message"]
        second = LINE.match(writer.lines[1])
        assert second["label"] == "TRACE "
        assert second["message"].startswith("Traceback")

    def test_traceback_hidden_above_trace(self, config):
        debugger = make(config, Facility.WARN)
        writer = debugger.logger.add_writer(RecordingWriter())
        with pytest.raises(ValueError):
            try:
                raise ValueError("boom")
            except ValueError as e:
                debugger.fail(e)
        assert len(writer.lines) == 1
        assert "Traceback" not in writer.lines[0]

    def test_fail_with_unraised_error(self, config):
        debugger = make(config, Facility.INFO)
        writer = debugger.logger.add_writer(RecordingWriter())
        error = KeyError("missing")
        with pytest.raises(KeyError) as excinfo:
            debugger.fail(error)
        assert excinfo.value is error
        assert len(writer.lines) == 1

    def test_error_logs_when_not_strict(self, tmp_path):
        config = DebuggerConfig(base_path=str(tmp_path), environment="live", cli=True)
        debugger = make(config, Facility.INFO)
        writer = debugger.logger.add_writer(RecordingWriter())
        assert debugger.error("soft failure") is debugger
        assert LINE.match(writer.lines[0])["message"] == "soft failure"

    def test_error_raises_in_dev(self, tmp_path):
        config = DebuggerConfig(base_path=str(tmp_path), environment="dev", cli=True)
        debugger = make(config, Facility.INFO)
        writer = debugger.logger.add_writer(RecordingWriter())
        with pytest.raises(EscalatedError, match="hard failure") as excinfo:
            debugger.error("hard failure")
        assert excinfo.value.source == "Importer"
        assert len(writer.lines) == 1

    def test_strict_flag_overrides_environment(self, tmp_path):
        config = DebuggerConfig(base_path=str(tmp_path), environment="dev", strict=False)
        debugger = make(config, Facility.INFO)
        assert debugger.error("logged only") is debugger

    def test_error_with_exception_in_strict_mode(self, tmp_path):
        config = DebuggerConfig(base_path=str(tmp_path), strict=True)
        debugger = make(config, Facility.INFO)
        error = RuntimeError("original")
        with pytest.raises(RuntimeError) as excinfo:
            debugger.error(error)
        assert excinfo.value is error

    def test_escalated_message_translated_once(self, tmp_path):
        seen = []

        def translator(key, fallback, tokens):
            seen.append(key)
            if key == "Importer.RowsRejected":
                return "Rejected {count} rows".format(**tokens)
            return fallback

        config = DebuggerConfig(base_path=str(tmp_path), strict=True, cli=True)
        debugger = make(config, Facility.INFO, catalog=translator)
        writer = debugger.logger.add_writer(RecordingWriter())
        seen.clear()

        with pytest.raises(EscalatedError, match="Rejected 3 rows"):
            debugger.error("rows rejected", tokens={"count": 3})

        assert seen == ["RowsRejected", "Importer.RowsRejected"]
        assert LINE.match(writer.lines[0])["message"] == "Rejected 3 rows"


# ═══════════════════════════════════════════════════════════════════
#  Teardown
# ═══════════════════════════════════════════════════════════════════

class TestClose:
    def test_emails_log_file_once(self, tmp_path):
        config = DebuggerConfig(
            base_path=str(tmp_path),
            cli=True,
            email={"email_log_file_to": "ops@example.com", "send_from": "app@example.com"},
            site_url="https://example.com",
        )
        transport = MemoryTransport()
        debugger = make(config, Facility.INFO | Facility.FILE, transport=transport)
        debugger.warn("something odd")
        debugger.close()
        debugger.close()

        assert transport.count == 1
        sent = transport.sent[0]
        assert sent.to == "ops@example.com"
        assert sent.sender == "app@example.com"
        assert sent.subject == "Debug log from: https://example.com"
        assert sent.body == debugger.log_file_path.read_text()
        assert "something odd" in sent.body
        assert "End of logging at" in sent.body

    def test_empty_log_file_sends_nothing(self, tmp_path):
        config = DebuggerConfig(
            base_path=str(tmp_path),
            email={"email_log_file_to": "ops@example.com"},
        )
        transport = MemoryTransport()
        # ERROR threshold: start/end INFO lines never reach the file
        debugger = make(config, Facility.ERROR | Facility.FILE, transport=transport)
        debugger.close()
        assert transport.count == 0

    def test_no_recipient_sends_nothing(self, config):
        transport = MemoryTransport()
        debugger = make(config, Facility.INFO | Facility.FILE, transport=transport)
        debugger.info("logged")
        debugger.close()
        assert transport.count == 0

    def test_email_writer_flushed_on_close(self, tmp_path):
        config = DebuggerConfig(base_path=str(tmp_path), email={"log_email": "ops@example.com"})
        transport = MemoryTransport()
        debugger = make(config, Facility.WARN | Facility.EMAIL, transport=transport)
        debugger.error("first")
        debugger.warn("second")
        debugger.info("dropped")
        debugger.close()
        assert transport.count == 1
        body = transport.sent[0].body
        assert "first" in body and "second" in body and "dropped" not in body

    def test_context_manager(self, config):
        with make(config, Facility.INFO | Facility.FILE) as debugger:
            debugger.info("inside")
        assert debugger.closed


# ═══════════════════════════════════════════════════════════════════
#  Read-back & status
# ═══════════════════════════════════════════════════════════════════

class TestReadLogAndStatus:
    def test_read_log_without_file(self, config):
        assert list(make(config, Facility.INFO).read_log()) == []

    def test_read_log(self, config):
        debugger = make(config, Facility.INFO | Facility.FILE)
        debugger.warn("second line")
        lines = list(debugger.read_log())
        assert len(lines) == 2
        assert lines[1].rstrip("\n").endswith("\tsecond line")
        debugger.close()

    def test_format_message(self, config):
        line = make(config, Facility.INFO).format_message("hi", Facility.NOTICE)
        assert LINE.match(line)["label"] == "NOTICE"

    def test_status(self, config):
        debugger = make(config, Facility.INFO | Facility.SCREEN)
        status = debugger.status()
        assert status["level_name"] == "INFO|SCREEN"
        assert status["threshold"] == "INFO"
        assert status["source"] == "Importer"
        assert "screen" in status["writers"]
        assert status["strict"] is False
        assert status["closed"] is False
