"""
End-to-end watch loop tests.

Runs the real scanner, worker, outcome handler and job pool against a temp
tree. Only the ffprobe/ffmpeg processes are replaced:
- ffprobe answers per selector (bitrate, duration, pix_fmt)
- ffmpeg writes the output file and streams progress lines
- sources whose name contains "broken" make ffmpeg exit with code 1
"""
import threading
import pytest
from unittest.mock import MagicMock, patch
from hevcwatch.domain.events import JobFailed, JobProgressUpdated, ScanFinished
from hevcwatch.infrastructure.ffmpeg import FFmpegAdapter
from hevcwatch.infrastructure.ffprobe import FFprobeAdapter
from hevcwatch.infrastructure.file_scanner import FileScanner
from hevcwatch.infrastructure.housekeeping import HousekeepingService
from hevcwatch.pipeline.orchestrator import Orchestrator
from hevcwatch.pipeline.outcome import OutcomeHandler
from hevcwatch.pipeline.scheduler import JobPool
from hevcwatch.pipeline.worker import ConversionWorker

pytestmark = pytest.mark.integration

PROBE_ANSWERS = {
    "stream=bit_rate": "3500000\n",
    "format=duration": "10.480000\n",
}


class FakeEncoder:
    """Records ffmpeg invocations and tracks how many overlap."""

    def __init__(self, pix_fmt="yuv420p"):
        self.pix_fmt = pix_fmt
        self.commands = []
        self.running = 0
        self.peak = 0
        self._lock = threading.Lock()

    def run(self, cmd, **kwargs):
        for selector, answer in PROBE_ANSWERS.items():
            if selector in cmd:
                return MagicMock(returncode=0, stdout=answer, stderr="")
        return MagicMock(returncode=0, stdout=f"{self.pix_fmt}\n", stderr="")

    def popen(self, cmd, stdin=None, stdout=None, stderr=None, **kwargs):
        with self._lock:
            self.commands.append(cmd)
            self.running += 1
            self.peak = max(self.peak, self.running)

        source = cmd[cmd.index("-i") + 1]
        output = cmd[-1]
        broken = "broken" in source
        with open(output, "wb") as f:
            f.write(b"partial" if broken else b"hevc")
        if broken:
            stderr.write("Error while encoding: device lost\n")
            stderr.flush()

        lines = ["out_time_ms=5000000\n"] if broken else [
            f"out_time_ms={s * 1_000_000}\n" for s in range(0, 12)
        ] + ["progress=end\n"]

        encoder = self

        def _wait():
            with encoder._lock:
                encoder.running -= 1
            return 1 if broken else 0

        process = MagicMock()
        process.stdout = iter(lines)
        process.returncode = 1 if broken else 0
        process.wait.side_effect = _wait
        return process


@pytest.fixture
def encoder():
    fake = FakeEncoder()
    with patch("subprocess.run", side_effect=fake.run), \
            patch("subprocess.Popen", side_effect=fake.popen):
        yield fake


def _orchestrator(config, bus, tmp_path):
    ffmpeg_temp = tmp_path / "tmp"
    ffmpeg_temp.mkdir(exist_ok=True)
    outcome = OutcomeHandler(config, bus, HousekeepingService(temp_dir=ffmpeg_temp))
    worker = ConversionWorker(
        event_bus=bus,
        ffprobe_adapter=FFprobeAdapter(),
        ffmpeg_adapter=FFmpegAdapter(event_bus=bus, qsv_device=config.qsv_device, temp_dir=ffmpeg_temp),
        outcome_handler=outcome,
    )
    return Orchestrator(
        config=config,
        event_bus=bus,
        file_scanner=FileScanner(config.input_dir, config.output_dir),
        worker=worker,
        job_pool=JobPool(config.max_jobs),
    )


def _write(path, content=b"source"):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


def test_mixed_tree_single_pass(sample_config, recording_bus, encoder, test_input_dir, test_output_dir, tmp_path):
    _write(test_input_dir / "A" / "b.MKV")
    _write(test_input_dir / "A" / "c.avi")
    _write(test_input_dir / "A" / "note.LOG")

    orchestrator = _orchestrator(sample_config, recording_bus, tmp_path)
    orchestrator.run(max_passes=1)

    # Matroska source keeps every stream except data/attachments, subtitles copied
    mkv_cmd = next(c for c in encoder.commands if c[-1].endswith("b.mkv"))
    assert mkv_cmd[-1] == str(test_output_dir / "A" / "b.mkv")
    assert "-c:s" in mkv_cmd
    assert "-0:t" in mkv_cmd
    assert mkv_cmd[mkv_cmd.index("-global_quality") + 1] == "20"

    # Everything else becomes mp4 with the default mapping
    mp4_cmd = next(c for c in encoder.commands if c[-1].endswith("c.mp4"))
    assert "-map" not in mp4_cmd
    assert "-c:s" not in mp4_cmd

    # The .LOG file is never touched and the directory survives because of it
    assert len(encoder.commands) == 2
    assert (test_input_dir / "A" / "note.LOG").exists()
    assert not (test_input_dir / "A" / "b.MKV").exists()
    assert not (test_input_dir / "A" / "c.avi").exists()
    assert (test_input_dir / "A").is_dir()
    assert not (test_output_dir / "A" / "note.mp4").exists()
    assert not (test_output_dir / "A" / "error.log").exists()

    stats = [e.stats for e in recording_bus.published if isinstance(e, ScanFinished)][0]
    assert stats.found == 3
    assert stats.skipped_log == 1
    assert stats.queued == 2

    for name in ("b.mkv", "c.mp4"):
        milestones = [
            e.milestone for e in recording_bus.published
            if isinstance(e, JobProgressUpdated) and e.job.plan.output_path.name == name
        ]
        assert milestones == [10, 20, 30, 40, 50, 60, 70, 80, 90, 100]

    # No diagnostics files left behind
    assert not list((tmp_path / "tmp").glob("ffmpeg_log_*"))


def test_successful_conversion_prunes_empty_folders(sample_config, event_bus, encoder, test_input_dir, test_output_dir, tmp_path):
    _write(test_input_dir / "Show" / "Season 1" / "e01.avi")

    _orchestrator(sample_config, event_bus, tmp_path).run(max_passes=1)

    assert (test_output_dir / "Show" / "Season 1" / "e01.mp4").read_bytes() == b"hevc"
    assert not (test_input_dir / "Show").exists()
    assert test_input_dir.is_dir()


def test_failed_conversion_keeps_source_and_logs(sample_config, recording_bus, encoder, test_input_dir, test_output_dir, tmp_path):
    source = _write(test_input_dir / "A" / "broken.avi")

    _orchestrator(sample_config, recording_bus, tmp_path).run(max_passes=1)

    assert source.exists()
    assert (test_input_dir / "A").is_dir()

    error_log = (test_output_dir / "A" / "error.log").read_text()
    assert "File: A/broken.avi" in error_log
    assert "Exit code: 1" in error_log
    assert "device lost" in error_log

    global_log = sample_config.global_error_log.read_text()
    assert "A/broken.avi" in global_log
    assert len([e for e in recording_bus.published if isinstance(e, JobFailed)]) == 1


def test_second_pass_is_idempotent(sample_config, event_bus, encoder, test_input_dir, tmp_path):
    config = sample_config.model_copy(update={"delete_source": False})
    source = _write(test_input_dir / "A" / "c.avi", b"original")

    orchestrator = _orchestrator(config, event_bus, tmp_path)
    orchestrator.run(max_passes=2)

    assert orchestrator.passes_completed == 2
    assert len(encoder.commands) == 1
    assert source.read_bytes() == b"original"


def test_failed_job_is_not_retried(sample_config, event_bus, encoder, test_input_dir, tmp_path):
    _write(test_input_dir / "A" / "broken.avi")

    _orchestrator(sample_config, event_bus, tmp_path).run(max_passes=2)

    assert len(encoder.commands) == 1
    assert len(sample_config.global_error_log.read_text().splitlines()) == 1


def test_concurrency_never_exceeds_max_jobs(sample_config, event_bus, encoder, test_input_dir, tmp_path):
    for n in range(6):
        _write(test_input_dir / f"dir{n}" / f"clip{n}.avi")

    _orchestrator(sample_config, event_bus, tmp_path).run(max_passes=1)

    assert len(encoder.commands) == 6
    assert encoder.peak <= sample_config.max_jobs


def test_ten_bit_source_uses_hardware_filter(sample_config, event_bus, test_input_dir, tmp_path):
    fake = FakeEncoder(pix_fmt="yuv420p10le")
    _write(test_input_dir / "hdr.mkv")

    with patch("subprocess.run", side_effect=fake.run), \
            patch("subprocess.Popen", side_effect=fake.popen):
        _orchestrator(sample_config, event_bus, tmp_path).run(max_passes=1)

    cmd = fake.commands[0]
    assert cmd[cmd.index("-init_hw_device") + 1] == f"qsv=hw:{sample_config.qsv_device}"
    assert "vpp_qsv=format=p010le" in cmd


def test_missing_input_dir_is_not_fatal(sample_config, event_bus, encoder, tmp_path):
    config = sample_config.model_copy(update={"input_dir": tmp_path / "not-there"})

    orchestrator = _orchestrator(config, event_bus, tmp_path)
    orchestrator.run(max_passes=1)

    assert orchestrator.passes_completed == 1
    assert encoder.commands == []


def test_request_stop_ends_loop(sample_config, event_bus, encoder, tmp_path):
    config = sample_config.model_copy(update={"loop_wait_seconds": 60})
    orchestrator = _orchestrator(config, event_bus, tmp_path)

    @event_bus.subscribe(ScanFinished)
    def _stop(_event):
        orchestrator.request_stop()

    thread = threading.Thread(target=orchestrator.run)
    thread.start()
    thread.join(5)

    assert not thread.is_alive()
    assert orchestrator.passes_completed == 1


def test_sources_sharing_an_output_are_encoded_once(sample_config, event_bus, encoder, test_input_dir, test_output_dir, tmp_path):
    config = sample_config.model_copy(update={"max_jobs": 1})
    first = _write(test_input_dir / "A" / "b.avi")
    second = _write(test_input_dir / "A" / "b.mov")

    orchestrator = _orchestrator(config, event_bus, tmp_path)
    orchestrator.run(max_passes=2)

    assert [c[c.index("-i") + 1] for c in encoder.commands] == [str(first)]
    assert not first.exists()
    # The losing source is never deleted; its output slot is taken
    assert second.exists()
    assert (test_output_dir / "A" / "b.mp4").read_bytes() == b"hevc"
