import pytest

from sfind.core.config import IndexerConfig
from sfind.core.errors import ConfigurationError
from sfind.core.models import BlockWindow, ProgressMarker, ResumeHint, StreamRequest


def test_block_window() -> None:
    w = BlockWindow.starting_at(1000, 500)

    assert (w.start, w.end, len(w)) == (1000, 1500, 500)
    assert w.next() == BlockWindow(1500, 2000)


@pytest.mark.parametrize("start,end", [(-1, 10), (5, 5), (5, 2)])
def test_block_window_rejects_bad_bounds(start: int, end: int) -> None:
    with pytest.raises(ValueError):
        BlockWindow(start, end)


def test_resume_hint_is_height_or_cursor() -> None:
    assert ResumeHint.from_height(3).cursor is None
    assert ResumeHint.from_cursor("abc").height is None
    with pytest.raises(ValueError):
        ResumeHint(mode="height", height=3, cursor="abc")
    with pytest.raises(ValueError):
        ResumeHint(mode="cursor")


def test_stream_request_payload() -> None:
    by_height = StreamRequest(BlockWindow(0, 500), "m", [], ResumeHint.from_height(0)).to_payload()
    by_cursor = StreamRequest(BlockWindow(500, 1000), "m", [], ResumeHint.from_cursor("c499")).to_payload()

    assert by_height == {"start_height": 0, "end_height": 500, "output_module": "m", "modules": []}
    assert by_cursor == {"cursor": "c499", "end_height": 1000, "output_module": "m", "modules": []}


def test_progress_marker_next_height() -> None:
    assert ProgressMarker(pipeline_name="p", last_height=12, cursor=None).next_height == 13


class TestIndexerConfig:
    """Config assembly from CLI values and environment."""

    def test_from_env(self) -> None:
        cfg = IndexerConfig.from_env(
            endpoint_url="https://x",
            package_file="pkg.json",
            module_name="block_to_block_output",
            environ={"DATABASE_URL": "duckdb:///tmp/x.duckdb", "SUBSTREAMS_API_TOKEN": "tok"},
        )

        assert cfg.database_url == "duckdb:///tmp/x.duckdb"
        assert cfg.api_token == "tok"
        assert cfg.window_size == 500
        assert cfg.resume_mode == "height"
        assert cfg.pipeline == "block_to_block_output"

    def test_empty_token_means_unauthenticated(self) -> None:
        cfg = IndexerConfig.from_env(
            endpoint_url="https://x",
            package_file="pkg.json",
            module_name="m",
            environ={"DATABASE_URL": ":memory:", "SUBSTREAMS_API_TOKEN": ""},
            pipeline_name="aptos",
        )

        assert cfg.api_token is None
        assert cfg.pipeline == "aptos"

    @pytest.mark.parametrize("environ", [{}, {"DATABASE_URL": "  "}])
    def test_database_url_required(self, environ: dict) -> None:
        with pytest.raises(ConfigurationError, match="DATABASE_URL"):
            IndexerConfig.from_env(endpoint_url="https://x", package_file="p", module_name="m", environ=environ)

    def test_rejects_bad_window(self) -> None:
        with pytest.raises(ConfigurationError):
            IndexerConfig.from_env(
                endpoint_url="https://x",
                package_file="p",
                module_name="m",
                environ={"DATABASE_URL": ":memory:"},
                window_size=0,
            )
