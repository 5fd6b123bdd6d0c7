"""Tests for reconstructing graphs from FFmpeg commands."""

import pytest

from ffgraph.core.errors import ParseAmbiguity
from ffgraph.core.tokenizer import strip_program, tokenize
from ffgraph.nodes.execution import emit
from ffgraph.nodes.factory import SELECT_BY, SelectMode
from ffgraph.nodes.graph import Graph, NodeKind
from ffgraph.nodes.layout import SEGMENT_OFFSET
from ffgraph.nodes.reconstructor import GraphReconstructor, infer_selector


@pytest.fixture
def reconstructor(registry):
    return GraphReconstructor(registry)


def _import(reconstructor, text, arrange=True):
    graph = Graph()
    reconstructor.import_command(text, graph, arrange=arrange)
    return graph


def _kinds(graph):
    return [node.kind for node in graph.nodes]


class TestInferSelector:
    """Tests for infer_selector()."""

    @pytest.mark.parametrize(
        "spec, mode, props, index",
        [
            ("0:v", SelectMode.TYPE, {"Type": "video", "Id": ""}, 0),
            ("0:a:1", SelectMode.TYPE, {"Type": "audio", "Id": "1"}, 0),
            ("1:m:language:ger", SelectMode.LANGUAGE, {"Language": "ger"}, 1),
            ("0:p:2", SelectMode.PROGRAM, {"Program": "2"}, 0),
            ("0:1", SelectMode.ID, {"Id": "1"}, 0),
            (":s", SelectMode.TYPE, {"Type": "subtitle", "Id": ""}, None),
            ("2", SelectMode.CUSTOM, {"Custom": "2"}, 2),
            ("v", SelectMode.CUSTOM, {"Custom": "v"}, None),
        ],
    )
    def test_modes(self, spec, mode, props, index):
        """Specifiers map to the mode that renders them back."""
        assert infer_selector(spec) == (mode, props, index)


class TestReconstruct:
    """Tests for GraphReconstructor.import_command()."""

    def test_filter_complex_command(self, reconstructor):
        """A full filtergraph command becomes connected nodes."""
        graph = _import(
            reconstructor,
            'ffmpeg -i in.mp4 -filter_complex "[0:v]scale=w=1280:h=720[v]" '
            '-map "[v]" -map 0:a -c:v libx264 -crf 23 -c:a aac out.mp4',
        )
        assert reconstructor.diagnostics == []
        assert _kinds(graph).count(NodeKind.INPUT) == 1
        assert _kinds(graph).count(NodeKind.OUTPUT) == 1
        assert _kinds(graph).count(NodeKind.FILTER) == 1
        assert _kinds(graph).count(NodeKind.ENCODER) == 2

        x264 = next(n for n in graph.nodes if n.name == "libx264")
        assert x264.properties["-crf"] == "23"
        named = next(n for n in graph.nodes if n.kind == NodeKind.STREAM_SELECTOR and n.properties.get("Name") == "v")
        assert named.properties[SELECT_BY] == "name"

        assert emit(graph) == (
            '-i in.mp4 -filter_complex "[0:v]scale=w=1280:h=720[v]" '
            "-map [v] -map 0:a -c:a aac -c:v libx264 -crf 23 out.mp4"
        )

    def test_positional_options_take_schema_names(self, reconstructor):
        """Positional options of a known filter fill its options in order."""
        graph = _import(reconstructor, 'ffmpeg -i in.mp4 -filter_complex "[0:v]scale=640:360[v]" -map [v] out.mp4')
        scale = next(n for n in graph.nodes if n.kind == NodeKind.FILTER)
        assert scale.properties == {"w": "640", "h": "360"}

    def test_unknown_filter_keeps_positional_options(self, reconstructor):
        """Unknown filters become ad-hoc nodes that emit their options verbatim."""
        graph = _import(reconstructor, 'ffmpeg -i in.mp4 -filter_complex "[0:v]unsharp=5:5:1.0[v]" -map "[v]" out.mp4')
        assert len(reconstructor.diagnostics) == 1
        assert isinstance(reconstructor.diagnostics[0], ParseAmbiguity)
        assert emit(graph) == '-i in.mp4 -filter_complex "[0:v]unsharp=5:5:1.0[v]" -map [v] out.mp4'

    def test_comma_chain(self, reconstructor):
        """Comma chains are wired through synthetic pads."""
        graph = _import(reconstructor, 'ffmpeg -i in.mp4 -filter_complex "[0:v]scale=640:-2,fps=30[v]" -map [v] out.mp4')
        filters = [n for n in graph.nodes if n.kind == NodeKind.FILTER]
        assert [f.name for f in filters] == ["scale", "fps"]
        command = emit(graph)
        assert "scale=w=640:h=-2[x" in command
        assert "fps=fps=30[v]" in command

    def test_filter_id_preserved(self, reconstructor):
        """Filter ids survive reconstruction."""
        graph = _import(reconstructor, 'ffmpeg -i in.mp4 -filter_complex "[0:v]scale@big=1920:1080[v]" -map [v] out.mp4')
        assert "[0:v]scale@big=w=1920:h=1080[v]" in emit(graph)

    def test_filter_without_output_pad(self, reconstructor):
        """A filter with no output pad is recorded and not emitted."""
        graph = _import(reconstructor, 'ffmpeg -i in.mp4 -filter_complex "[0:v]scale=640:360" out.mp4')
        assert any("no output pad" in str(d) for d in reconstructor.diagnostics)
        assert emit(graph) == "-i in.mp4 out.mp4"

    def test_global_flags(self, reconstructor):
        """Flags before -i attach to the input, flags after it to the output."""
        graph = _import(reconstructor, "ffmpeg -y -ss 5 -i in.mp4 -t 10 -shortest out.mp4")
        assert reconstructor.diagnostics == []
        assert _kinds(graph).count(NodeKind.GENERIC_FLAG) == 4
        assert emit(graph) == "-y -ss 5 -i in.mp4 -t 10 -shortest out.mp4"

    def test_unknown_flag_kept(self, reconstructor):
        """Unknown options become custom flags."""
        graph = _import(reconstructor, "ffmpeg -i in.mp4 -vf scale=640:-2 out.mp4")
        assert len(reconstructor.diagnostics) == 1
        assert emit(graph) == "-i in.mp4 -vf scale=640:-2 out.mp4"

    def test_negative_number_is_a_value(self, reconstructor):
        """A negative number after a flag is its value."""
        graph = _import(reconstructor, "ffmpeg -itsoffset -1.5 -i in.mp4 out.mp4")
        assert emit(graph) == "-itsoffset -1.5 -i in.mp4 out.mp4"

    def test_codec_option_without_owner(self, reconstructor):
        """A codec option with no codec node stays a plain flag."""
        graph = _import(reconstructor, "ffmpeg -i in.mp4 -crf 23 out.mp4")
        assert emit(graph) == "-i in.mp4 -crf 23 out.mp4"

    def test_stream_copy(self, reconstructor):
        """'copy' is accepted without a diagnostic."""
        graph = _import(reconstructor, "ffmpeg -i in.mp4 -map 0 -c:v copy out.mkv")
        assert reconstructor.diagnostics == []
        assert emit(graph) == "-i in.mp4 -map 0 -c:v copy out.mkv"

    def test_decoder_and_demuxer(self, reconstructor):
        """Input-side codec and format flags become decoder and demuxer nodes."""
        graph = _import(reconstructor, "ffmpeg -f concat -safe 0 -c:v h264_cuvid -i list.txt out.mp4")
        kinds = _kinds(graph)
        assert NodeKind.DECODER in kinds
        assert NodeKind.DEMUXER in kinds
        demuxer = next(n for n in graph.nodes if n.kind == NodeKind.DEMUXER)
        assert demuxer.properties["-safe"] == "0"
        assert emit(graph) == "-c:v h264_cuvid -f concat -safe 0 -i list.txt out.mp4"

    def test_flag_with_stream_specifier(self, reconstructor):
        """Stream specifiers on flags become selectors on the flag's stream slot."""
        graph = _import(reconstructor, "ffmpeg -i in.mp4 -b:v 2M out.mp4")
        assert emit(graph) == "-i in.mp4 -b:v 2M out.mp4"

    def test_invalid_value_reported(self, reconstructor):
        """Values failing their option type are reported but kept."""
        graph = _import(reconstructor, "ffmpeg -i in.mp4 -threads four out.mp4")
        assert any("integer" in str(d) for d in reconstructor.diagnostics)
        assert "-threads four" in emit(graph)

    def test_map_to_missing_input(self, reconstructor):
        """Specifiers naming a missing input are reported."""
        _import(reconstructor, "ffmpeg -i in.mp4 -map 1:v out.mp4")
        assert any("missing input 1" in str(d) for d in reconstructor.diagnostics)

    def test_no_map_selects_every_input(self, reconstructor):
        """Without -map, each input is routed to the output."""
        graph = _import(reconstructor, "ffmpeg -i a.mp4 -i b.wav out.mp4")
        out = next(n for n in graph.nodes if n.kind == NodeKind.OUTPUT)
        linked = [s for s in out.inputs if s.name == "stream" and s.link is not None]
        assert len(linked) == 2
        assert emit(graph) == "-i a.mp4 -i b.wav out.mp4"

    def test_trailing_arguments_reported(self, reconstructor):
        """Arguments after the last output are reported."""
        _import(reconstructor, "ffmpeg -i in.mp4 out.mp4 -y")
        assert any("after the last output" in str(d) for d in reconstructor.diagnostics)

    def test_pipeline_segments(self, reconstructor):
        """Each pipe segment is placed in its own grid block."""
        graph = _import(reconstructor, "ffmpeg -i a.mp4 -f mpegts - | ffmpeg -i - b.mp4", arrange=False)
        inputs = [n for n in graph.nodes if n.kind == NodeKind.INPUT]
        assert [n.properties["src_path"] for n in inputs] == ["a.mp4", "-"]
        assert inputs[0].pos[0] == 0
        assert inputs[1].pos[0] == SEGMENT_OFFSET

    def test_empty_text(self, reconstructor):
        """Blank text creates nothing."""
        graph = Graph()
        assert reconstructor.import_command("  ", graph) == []
        assert graph.nodes == []


class TestRoundTrip:
    """Tests for parse/emit round trips."""

    @pytest.mark.parametrize(
        "command",
        [
            "ffmpeg -i in.mp4 -c:v libx264 -preset slow -crf 20 out.mp4",
            "ffmpeg -y -i in.mp4 -map 0:v -map 0:a:1 -c:a aac out.mkv",
            'ffmpeg -i a.mp4 -i b.mp4 -filter_complex "[0:v][1:v]overlay=10:20[v]" -map "[v]" -map 1:a out.mp4',
            "ffmpeg -i in.mp4 -map 0:m:language:eng -map 0:p:1 out.ts",
        ],
    )
    def test_idempotent(self, reconstructor, command):
        """Emitting, reparsing and emitting again is stable."""
        first = emit(_import(reconstructor, command))
        second = emit(_import(reconstructor, "ffmpeg " + first))
        assert first == second

    @pytest.mark.parametrize(
        "command",
        [
            "ffmpeg -i in.mp4 -map 0:v out.mp4",
            "ffmpeg -i a.mp4 -i b.wav out.mp4",
            "ffmpeg -y -ss 5 -i in.mp4 -map 0:v -map 0:a:1 -t 10 out.mkv",
            "ffmpeg -i in.mp4 -c:v libx264 -preset slow -crf 20 -c:a aac out.mp4",
            "ffmpeg -i in.mp4 -b:v 2M out.mp4",
            "ffmpeg -i in.mp4 -map 0:m:language:eng -map 0:p:1 out.ts",
            "ffmpeg -f concat -safe 0 -c:v h264_cuvid -i list.txt out.mp4",
            'ffmpeg -i a.mp4 -i b.mp4 -filter_complex "[0:v][1:v]overlay=x=10:y=20[v]" -map "[v]" -map 1:a out.mp4',
            'ffmpeg -i in.mp4 -filter_complex "[0:v]scale=w=640:h=360[s];[s]fps=fps=30[v]" -map [v] out.mp4',
        ],
    )
    def test_same_arguments_as_source(self, reconstructor, command):
        """The emitted command carries the same arguments as the source."""
        emitted = emit(_import(reconstructor, command))
        assert sorted(tokenize(emitted)) == sorted(strip_program(tokenize(command)))
