from __future__ import annotations

# blocks requested per stream window
DEFAULT_WINDOW_SIZE = 500

DEFAULT_TIMEOUT_S = 30

BLOCK_OUTPUT_MODULE = "block_to_block_output"
