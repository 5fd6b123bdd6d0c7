"""Core command-text processing for ffgraph."""
