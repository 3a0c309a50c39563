import pytest
from pathlib import Path
from unittest.mock import MagicMock
from hevcwatch.config.models import ConverterConfig
from hevcwatch.domain.models import ConversionJob, ProbeResult, PixelFormatOption
from hevcwatch.domain.planning import build_plan, make_work_item
from hevcwatch.infrastructure.event_bus import EventBus

# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def test_input_dir(tmp_path):
    """Creates a test input directory."""
    input_dir = tmp_path / "input"
    input_dir.mkdir()
    return input_dir

@pytest.fixture
def test_output_dir(tmp_path):
    """Creates a test output directory."""
    output_dir = tmp_path / "output"
    output_dir.mkdir()
    return output_dir

@pytest.fixture
def sample_config(tmp_path, test_input_dir, test_output_dir):
    """Returns a ConverterConfig rooted in tmp_path."""
    return ConverterConfig(
        delete_source=True,
        max_jobs=2,
        input_dir=test_input_dir,
        output_dir=test_output_dir,
        loop_wait_seconds=0,
        global_error_log=tmp_path / "global_errors.log",
        log_path=tmp_path / "conversion.log",
    )

# ============================================================================
# EventBus Fixtures
# ============================================================================

@pytest.fixture
def event_bus():
    """Returns a fresh EventBus instance."""
    return EventBus()

@pytest.fixture
def recording_bus():
    """EventBus that also records every published event."""
    bus = EventBus()
    published = []
    original_publish = bus.publish

    def _publish(event):
        published.append(event)
        original_publish(event)

    bus.publish = _publish
    bus.published = published
    return bus

# ============================================================================
# Job Fixtures
# ============================================================================

@pytest.fixture
def make_job(test_input_dir, test_output_dir):
    """Factory creating a source file under the input dir and its pending job."""
    def _make(rel_path: str = "A/movie.avi", content: bytes = b"dummy video content") -> ConversionJob:
        source = test_input_dir / rel_path
        source.parent.mkdir(parents=True, exist_ok=True)
        source.write_bytes(content)
        item = make_work_item(source, test_input_dir)
        return ConversionJob(item=item, plan=build_plan(item, test_output_dir))
    return _make

@pytest.fixture
def fake_ffprobe():
    """FFprobeAdapter stand-in returning a fixed probe result."""
    probe = MagicMock()
    probe.probe.return_value = ProbeResult(
        bitrate=3_500_000, duration=100, pixel_format=PixelFormatOption.NONE
    )
    return probe


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
