"""Tests for the editing session facade."""

import json

import pytest

from ffgraph.core.config import StudioConfig
from ffgraph.core.errors import MissingOutputError
from ffgraph.nodes.graph import NodeKind
from ffgraph.session import GraphSession, is_ffmpeg_command


@pytest.fixture
def session(registry):
    return GraphSession(registry, StudioConfig(merge_jitter=0))


class TestIsFfmpegCommand:
    """Tests for is_ffmpeg_command()."""

    def test_detection(self):
        """Commands are recognised by program name or an input flag."""
        assert is_ffmpeg_command("ffmpeg -version")
        assert is_ffmpeg_command("  FFMPEG -i a.mp4 b.mp4")
        assert is_ffmpeg_command("-y -i a.mp4 b.mp4")
        assert not is_ffmpeg_command("hello world")


class TestGraphSession:
    """Tests for GraphSession."""

    def test_paste_command(self, session):
        """Pasting a command reconstructs it as one undoable step."""
        assert session.paste("ffmpeg -i in.mp4 -map 0:v out.mp4")
        assert session.command() == "ffmpeg -i in.mp4 -map 0:v out.mp4"
        assert len(session.history.history) == 2
        assert session.undo()
        assert session.graph.nodes == []

    def test_paste_graph_json(self, session):
        """Pasting graph JSON merges it into the graph."""
        session.paste("ffmpeg -i a.mp4 -map 0:v a_out.mp4")
        copied = session.export()
        count = len(session.graph.nodes)
        assert session.paste(json.dumps(copied))
        assert len(session.graph.nodes) == 2 * count
        assert session.command().count("-map") == 2

    def test_paste_garbage(self, session, caplog):
        """Unrecognised clipboard text is rejected."""
        assert not session.paste("just some words")
        assert "neither a graph nor an FFmpeg command" in caplog.text

    def test_copy_selection(self, session):
        """Only selected nodes and links between them are copied."""
        session.paste("ffmpeg -i in.mp4 -map 0:v out.mp4")
        inp = next(n for n in session.graph.nodes if n.kind == NodeKind.INPUT)
        sel = next(n for n in session.graph.nodes if n.kind == NodeKind.STREAM_SELECTOR)
        inp.selected = sel.selected = True
        data = json.loads(session.copy_selection())
        assert sorted(n["id"] for n in data["nodes"]) == sorted([inp.id, sel.id])
        assert len(data["links"]) == 1

    def test_load_resets_history(self, session):
        """Loading a graph starts a fresh history."""
        session.paste("ffmpeg -i in.mp4 out.mp4")
        data = session.export()
        session.load(data)
        assert not session.can_undo
        assert session.export()["nodes"] == data["nodes"]

    def test_import_graph(self, session):
        """Importing merges and resets history."""
        session.paste("ffmpeg -i in.mp4 out.mp4")
        data = session.export()
        session.import_graph(data)
        assert len(session.graph.nodes) == 2 * len(data["nodes"])
        assert not session.can_undo

    def test_command_without_output(self, session):
        """A graph without outputs cannot produce a command."""
        with pytest.raises(MissingOutputError):
            session.command()

    def test_command_variables(self, session):
        """Variables are substituted into the command."""
        session.paste("ffmpeg -i in.mp4 {{stem}}.mkv")
        assert session.command(variables={"stem": "final"}) == "ffmpeg -i in.mp4 final.mkv"

    @pytest.mark.asyncio
    async def test_expand_commands(self, session):
        """The session's command can be expanded over wildcards."""
        async def fake_glob(pattern):
            return ["a.mp4", "b.mp4"] if pattern == "*.mp4" else []

        session.load({"nodes": [], "links": []})
        session.paste('ffmpeg -i "*.mp4" {name}.mkv')
        commands = await session.expand_commands(fake_glob)
        assert commands == ["ffmpeg -i a.mp4 a.mkv", "ffmpeg -i b.mp4 b.mkv"]
