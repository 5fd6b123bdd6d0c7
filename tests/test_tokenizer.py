"""Tests for command tokenization and pipe splitting."""

from ffgraph.core.tokenizer import join_args, quote_arg, split_pipe, strip_program, tokenize


class TestTokenize:
    """Tests for tokenize()."""

    def test_plain_words(self):
        """Whitespace separates tokens."""
        assert tokenize("ffmpeg -i in.mp4  out.mp4") == ["ffmpeg", "-i", "in.mp4", "out.mp4"]

    def test_double_quotes_group(self):
        """Double-quoted text becomes one token without the quotes."""
        assert tokenize('-i "my clip.mp4"') == ["-i", "my clip.mp4"]

    def test_single_quotes_group(self):
        """Single-quoted text becomes one token without the quotes."""
        assert tokenize("-vf 'scale=1280:720, fps=30'") == ["-vf", "scale=1280:720, fps=30"]

    def test_quotes_nest_literally(self):
        """A quote of the other kind is kept literally."""
        assert tokenize("\"it's\" 'say \"hi\"'") == ["it's", 'say "hi"']

    def test_escaped_space(self):
        """A backslash-escaped space does not split."""
        assert tokenize(r"-i my\ clip.mp4") == ["-i", "my clip.mp4"]

    def test_escaped_quote_inside_double_quotes(self):
        """An escaped double quote stays inside the token."""
        assert tokenize(r'"a \"b\" c"') == ['a "b" c']

    def test_backslash_literal_in_single_quotes(self):
        """Backslashes inside single quotes are not escapes."""
        assert tokenize(r"'a\ b'") == [r"a\ b"]

    def test_other_backslashes_kept(self):
        """A backslash before an ordinary character is kept."""
        assert tokenize(r"C:\videos\in.mp4") == [r"C:\videos\in.mp4"]

    def test_line_continuation(self):
        """Backslash-newline joins lines."""
        text = "ffmpeg -i in.mp4 \\\n    -c:v libx264 \\\r\n  out.mp4"
        assert tokenize(text) == ["ffmpeg", "-i", "in.mp4", "-c:v", "libx264", "out.mp4"]

    def test_empty_quotes_dropped(self):
        """Empty tokens are not emitted."""
        assert tokenize('a "" b') == ["a", "b"]

    def test_empty_text(self):
        """Empty input yields no tokens."""
        assert tokenize("   ") == []


class TestSplitPipe:
    """Tests for split_pipe()."""

    def test_splits_on_pipe(self):
        """Unquoted pipes separate segments."""
        assert split_pipe("ffmpeg -i a.mp4 - | ffmpeg -i - b.mp4") == [
            "ffmpeg -i a.mp4 -",
            "ffmpeg -i - b.mp4",
        ]

    def test_quoted_pipe_kept(self):
        """Pipes inside quotes do not split."""
        text = "ffmpeg -i in.mp4 -vf \"format=yuv420p|yuv444p\" out.mp4"
        assert split_pipe(text) == [text]

    def test_escaped_pipe_kept(self):
        """A backslash-escaped pipe does not split."""
        assert split_pipe(r"echo a\|b") == [r"echo a\|b"]

    def test_empty_segments_dropped(self):
        """Blank segments are dropped."""
        assert split_pipe("a | | b |") == ["a", "b"]


class TestStripProgram:
    """Tests for strip_program()."""

    def test_strips_ffmpeg(self):
        """A leading ffmpeg token is removed."""
        assert strip_program(["ffmpeg", "-i", "a.mp4"]) == ["-i", "a.mp4"]

    def test_strips_program_path(self):
        """A path to the binary is removed too."""
        assert strip_program(["/usr/bin/ffmpeg", "-y"]) == ["-y"]

    def test_keeps_other_tokens(self):
        """Tokens without the program name are untouched."""
        assert strip_program(["-i", "a.mp4"]) == ["-i", "a.mp4"]


class TestQuoting:
    """Tests for quote_arg() and join_args()."""

    def test_plain_argument_unquoted(self):
        """Safe arguments are returned as-is."""
        assert quote_arg("out.mp4") == "out.mp4"

    def test_space_quoted(self):
        """Arguments with spaces are double-quoted."""
        assert quote_arg("my clip.mp4") == '"my clip.mp4"'

    def test_empty_quoted(self):
        """An empty argument is kept as an empty pair of quotes."""
        assert quote_arg("") == '""'

    def test_join_tokenizes_back(self):
        """Joined arguments tokenize back to the same list."""
        args = ["-i", "my clip.mp4", "-metadata", 'title=say "hi"', "out.mp4"]
        assert tokenize(join_args(args)) == args
