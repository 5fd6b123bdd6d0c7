"""Pytest configuration for ffgraph tests.

Puts the project root on sys.path so `ffgraph` is importable without an
install, and provides a small registry fixture so tests do not depend on
the shipped manifests.
"""

import os
import sys

import pytest

project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from ffgraph.catalog.manifest_loader import load_manifest_data  # noqa: E402
from ffgraph.catalog.registry import NodeRegistry  # noqa: E402


TEST_MANIFEST = {
    "nodes": [
        {
            "name": "scale",
            "category": "..FV.......",
            "pcategory": "filters",
            "desc": "Scale the input video",
            "options": [
                {"flag": "w", "desc": "Output video width"},
                {"flag": "h", "desc": "Output video height"},
            ],
        },
        {
            "name": "fps",
            "category": "..FV.......",
            "pcategory": "filters",
            "options": [{"flag": "fps"}],
        },
        {
            "name": "overlay",
            "category": "..FV.......",
            "pcategory": "filters",
            "options": [{"flag": "x"}, {"flag": "y"}],
        },
        {
            "name": "volume",
            "category": "..F.A......",
            "pcategory": "filters",
            "options": [{"flag": "volume"}],
        },
        {
            "name": "libx264",
            "category": "E..V.......",
            "pcategory": "encoders",
            "options": [
                {"flag": "-preset", "category": "E..V......."},
                {"flag": "-crf", "type": "<float>", "category": "E..V......."},
            ],
        },
        {
            "name": "aac",
            "category": "E...A......",
            "pcategory": "encoders",
            "options": [{"flag": "-aac_coder", "type": "<int>", "enum_vals": ["anmr", "twoloop", "fast"]}],
        },
        {
            "name": "h264_cuvid",
            "category": ".D.V.......",
            "pcategory": "decoders",
            "options": [{"flag": "-gpu", "type": "<string>"}],
        },
        {
            "name": "mp4",
            "category": "E..........",
            "pcategory": "muxers",
            "options": [{"flag": "-movflags", "type": "<flags>"}],
        },
        {
            "name": "concat",
            "category": ".D.........",
            "pcategory": "demuxers",
            "options": [{"flag": "-safe", "type": "<boolean>"}],
        },
        {
            "name": "Main options",
            "is_av_option": False,
            "pcategory": "general",
            "options": [
                {"flag": "-t", "type": "<duration>"},
                {"flag": "-ss", "type": "<duration>"},
                {"flag": "-threads", "type": "<int>"},
                {"flag": "-b", "type": "<string>"},
                {"flag": "-y", "no_args": True},
                {"flag": "-shortest", "no_args": True},
            ],
        },
    ]
}


@pytest.fixture
def registry():
    """Registry loaded from the inline test manifest."""
    reg = NodeRegistry()
    load_manifest_data(TEST_MANIFEST, reg, source="<test>")
    return reg
