"""Unit tests for the incremental stream decoder."""

import json
from pathlib import Path

import pytest
import pytest_check as check

from src.streaming.compose import Phase
from src.streaming.config import StreamSettings
from src.streaming.decoder import StreamDecoder
from src.streaming.errors import TransportError
from tests.conftest import FAILURE_MESSAGE, FakeClock

REASONING_DONE_ANSWER = "> 💭 **Reasoning** (4s)\n>\n> 测试\n\n---\n\n答案"


def snapshot_frame(items: list[dict]) -> str:
    """Build one upstream frame carrying a wrapped snapshot."""
    return f"data: <markdown>{json.dumps(items)}</markdown>\n\n"


def thinking(content: str, status: str = "running") -> dict:
    return {"type": "Thinking", "content": {"status": status, "content": content}}


def markdown(content: str) -> dict:
    return {"type": "MarkDown", "content": content}


def run_fragments(settings: StreamSettings, fragments: list[str]) -> StreamDecoder:
    decoder = StreamDecoder(settings, clock=FakeClock())
    for fragment in fragments:
        decoder.feed(fragment)
    return decoder


class TestSnapshotDecoding:
    """Tests for decoding reasoning and answer snapshots."""

    def test_running_reasoning(self, stream_settings: StreamSettings, clock: FakeClock) -> None:
        """A running Thinking item is shown as live reasoning."""
        decoder = StreamDecoder(stream_settings, clock=clock)

        display = decoder.feed(snapshot_frame([thinking("%E6%B5%8B%E8%AF%95")]))

        check.equal(decoder.state.reasoning_text, "测试")
        check.equal(display.phase, Phase.THINKING)
        check.is_true(display.is_loading)

    def test_answer_completes_only_after_marker(
        self, stream_settings: StreamSettings, clock: FakeClock
    ) -> None:
        """Reasoning, separator and answer appear; loading ends at the marker."""
        decoder = StreamDecoder(stream_settings, clock=clock)
        decoder.feed(snapshot_frame([thinking("%E6%B5%8B%E8%AF%95")]))

        display = decoder.feed(
            snapshot_frame([thinking("%E6%B5%8B%E8%AF%95", "done"), markdown("%E7%AD%94%E6%A1%88")])
        )

        check.equal(display.phase, Phase.ANSWERING)
        check.is_in(f"测试{stream_settings.labels.separator}答案", display.content)
        check.is_true(display.is_loading)

        final = decoder.feed("data: <end></end>\n\n")

        check.is_false(final.is_loading)
        check.equal(final.content, display.content)
        check.is_true(decoder.terminal_seen)

    def test_truncated_escape_produces_no_update(
        self, stream_settings: StreamSettings, clock: FakeClock
    ) -> None:
        """A snapshot cut mid-escape is skipped without raising."""
        decoder = StreamDecoder(stream_settings, clock=clock)
        decoder.feed("data: <markdown>%E7%AD%94</markdown>\n\n")

        update = decoder.feed("data: <markdown>%E7%AD%94%E6%A1%4</markdown>\n\n")

        check.is_none(update)
        check.equal(decoder.render().content, "答")

    def test_truncated_escape_inside_json_item(
        self, stream_settings: StreamSettings, clock: FakeClock
    ) -> None:
        decoder = StreamDecoder(stream_settings, clock=clock)
        decoder.feed(snapshot_frame([markdown("%E7%AD%94")]))

        check.is_none(decoder.feed(snapshot_frame([markdown("%E7%AD%94%4")])))
        check.equal(decoder.state.answer_text, "答")

    def test_literal_fallback(self, stream_settings: StreamSettings, test_data_dir: Path) -> None:
        """Non-JSON snapshots are shown as text."""
        decoder = run_fragments(stream_settings, [(test_data_dir / "literal.sse").read_text()])

        final = decoder.render()

        check.equal(final.phase, Phase.LITERAL)
        check.equal(final.content, "Hello world, again")
        check.is_false(final.is_loading)

    def test_relay_content_frame(self, stream_settings: StreamSettings, clock: FakeClock) -> None:
        """Direct content frames from a relay are shown as text."""
        decoder = StreamDecoder(stream_settings, clock=clock)

        display = decoder.feed('data: {"content": "relayed"}\n\n')

        check.equal(display.content, "relayed")

    def test_tag_split_across_frames(self, stream_settings: StreamSettings, clock: FakeClock) -> None:
        """A wrapper tag spread over two frames is reassembled."""
        decoder = StreamDecoder(stream_settings, clock=clock)

        check.equal(decoder.feed("data: <markdown>Hel\n\n").content, stream_settings.labels.processing)
        display = decoder.feed("data: lo</markdown>\n\n")

        check.equal(display.content, "Hello")


class TestFrameBoundaryIndependence:
    """Tests for identical results regardless of fragment boundaries."""

    def test_every_two_way_split(self, stream_settings: StreamSettings, test_data_dir: Path) -> None:
        """Splitting the stream at any offset yields the same final content."""
        stream = (test_data_dir / "reasoning_answer.sse").read_text()
        whole = run_fragments(stream_settings, [stream]).finish().content

        check.equal(whole, REASONING_DONE_ANSWER)
        for cut in range(1, len(stream)):
            split = run_fragments(stream_settings, [stream[:cut], stream[cut:]])
            check.equal(split.finish().content, whole, f"split at {cut}")

    def test_one_character_at_a_time(
        self, stream_settings: StreamSettings, test_data_dir: Path
    ) -> None:
        stream = (test_data_dir / "reasoning_answer.sse").read_text()

        decoder = run_fragments(stream_settings, list(stream))

        check.equal(decoder.finish().content, REASONING_DONE_ANSWER)

    def test_idempotent_replay(self, stream_settings: StreamSettings, test_data_dir: Path) -> None:
        """Replaying a recorded stream yields byte-identical content."""
        stream = (test_data_dir / "reasoning_answer.sse").read_text()
        frames = [f"{frame}\n\n" for frame in stream.split("\n\n") if frame]

        first = run_fragments(stream_settings, frames).finish().content
        second = run_fragments(stream_settings, frames).finish().content

        check.equal(first, second)


class TestMonotonicGrowth:
    """Tests for the growth-only section contract."""

    def test_stale_resends_never_shrink_sections(
        self, stream_settings: StreamSettings, clock: FakeClock
    ) -> None:
        """Section lengths are non-decreasing across out-of-order resends."""
        decoder = StreamDecoder(stream_settings, clock=clock)
        snapshots = [
            [thinking("%E6%B5%8B")],
            [thinking("%E6%B5%8B%E8%AF%95")],
            [thinking("%E6%B5%8B")],
            [thinking("%E6%B5%8B%E8%AF%95", "done"), markdown("%E7%AD%94%E6%A1%88")],
            [thinking("%E6%B5%8B%E8%AF%95", "done"), markdown("%E7%AD%94")],
        ]

        lengths: list[tuple[int, int]] = []
        for items in snapshots:
            decoder.feed(snapshot_frame(items))
            lengths.append((len(decoder.state.reasoning_text), len(decoder.state.answer_text)))

        check.equal(lengths, sorted(lengths))
        check.equal(decoder.state.answer_text, "答案")

    def test_repeated_snapshot_is_not_republished(
        self, stream_settings: StreamSettings, clock: FakeClock
    ) -> None:
        decoder = StreamDecoder(stream_settings, clock=clock)
        frame = snapshot_frame([thinking("%E6%B5%8B")])

        check.is_not_none(decoder.feed(frame))
        check.is_none(decoder.feed(frame))


class TestTerminalMarker:
    """Tests for terminal marker handling."""

    def test_nothing_after_marker_is_consumed(
        self, stream_settings: StreamSettings, clock: FakeClock
    ) -> None:
        decoder = StreamDecoder(stream_settings, clock=clock)
        decoder.feed("data: <markdown>first</markdown>\n\ndata: <end></end>\n\n")

        update = decoder.feed("data: <markdown>first and more</markdown>\n\n")

        check.is_none(update)
        check.equal(decoder.finish().content, "first")

    def test_marker_split_across_fragments(
        self, stream_settings: StreamSettings, clock: FakeClock
    ) -> None:
        decoder = StreamDecoder(stream_settings, clock=clock)
        decoder.feed("data: <markdown>first</markdown>\n\ndata: <end></")

        check.is_false(decoder.terminal_seen)
        decoder.feed("end>\n\ndata: <markdown>later</markdown>\n\n")

        check.is_true(decoder.terminal_seen)
        check.equal(decoder.finish().content, "first")

    def test_marker_without_trailing_blank_line(
        self, stream_settings: StreamSettings, clock: FakeClock
    ) -> None:
        decoder = StreamDecoder(stream_settings, clock=clock)

        display = decoder.feed("data: <markdown>done</markdown>\n\ndata: <end></end>")

        check.is_true(decoder.terminal_seen)
        check.is_false(display.is_loading)


class TestElapsedTime:
    """Tests for the reasoning elapsed-time header."""

    def test_refresh_updates_thinking_header(
        self, stream_settings: StreamSettings, clock: FakeClock
    ) -> None:
        decoder = StreamDecoder(stream_settings, clock=clock)
        decoder.feed(snapshot_frame([thinking("%E6%B5%8B")]))

        check.is_none(decoder.refresh())
        clock.advance(2)
        display = decoder.refresh()

        check.is_in("(2s)", display.content)

    def test_elapsed_freezes_when_reasoning_finishes(
        self, stream_settings: StreamSettings, clock: FakeClock
    ) -> None:
        decoder = StreamDecoder(stream_settings, clock=clock)
        decoder.feed(snapshot_frame([thinking("%E6%B5%8B")]))
        clock.advance(3)
        decoder.feed(snapshot_frame([thinking("%E6%B5%8B", "done")]))
        clock.advance(10)

        check.equal(decoder.elapsed_seconds(), 3)
        check.is_true(decoder.reasoning_settled)
        check.is_none(decoder.refresh())
        check.is_in("(3s)", decoder.render().content)

    def test_refresh_outside_thinking_is_noop(
        self, stream_settings: StreamSettings, clock: FakeClock
    ) -> None:
        decoder = StreamDecoder(stream_settings, clock=clock)
        clock.advance(5)

        check.is_none(decoder.refresh())


class TestFinishAndFail:
    """Tests for closing an exchange."""

    def test_finish_without_marker(self, stream_settings: StreamSettings, clock: FakeClock) -> None:
        """A stream that just ends is closed with its last content."""
        decoder = StreamDecoder(stream_settings, clock=clock)
        decoder.feed(snapshot_frame([thinking("%E6%B5%8B")]))

        final = decoder.finish()

        check.is_false(final.is_loading)
        check.is_in("测", final.content)
        check.is_true(decoder.closed)
        check.is_none(decoder.feed(snapshot_frame([markdown("late")])))

    def test_finish_applies_unterminated_tail(
        self, stream_settings: StreamSettings, clock: FakeClock
    ) -> None:
        decoder = StreamDecoder(stream_settings, clock=clock)
        decoder.feed("data: <markdown>tail</markdown>")

        check.equal(decoder.finish().content, "tail")

    def test_finish_on_empty_stream(self, stream_settings: StreamSettings, clock: FakeClock) -> None:
        final = StreamDecoder(stream_settings, clock=clock).finish()

        check.equal(final.content, stream_settings.labels.empty)
        check.is_false(final.is_loading)

    def test_relay_error_frame_raises(
        self, stream_settings: StreamSettings, clock: FakeClock
    ) -> None:
        decoder = StreamDecoder(stream_settings, clock=clock)

        with pytest.raises(TransportError, match="reset"):
            decoder.feed('data: {"error": true, "message": "connection reset"}\n\n')

    def test_fail_discards_partial_content(
        self, stream_settings: StreamSettings, clock: FakeClock
    ) -> None:
        """After a failure only the fixed failure message remains."""
        decoder = StreamDecoder(stream_settings, clock=clock)
        decoder.feed(snapshot_frame([thinking("%E6%B5%8B%E8%AF%95"), markdown("%E7%AD%94")]))

        final = decoder.fail()

        check.equal(final.content, FAILURE_MESSAGE)
        check.equal(final.phase, Phase.FAILED)
        check.is_false(final.is_loading)
        check.is_not_in("测试", final.content)
        check.is_true(decoder.failed)
        check.equal(decoder.render().phase, Phase.FAILED)
        check.is_none(decoder.feed(snapshot_frame([markdown("%E7%AD%94%E6%A1%88")])))
