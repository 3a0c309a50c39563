import typer
from datetime import datetime
from pydantic import ValidationError
from hevcwatch.config.loader import load_config_from_env
from hevcwatch.domain.exceptions import DependencyMissingError
from hevcwatch.infrastructure.logging import setup_logging
from hevcwatch.infrastructure.event_bus import EventBus
from hevcwatch.infrastructure.file_scanner import FileScanner
from hevcwatch.infrastructure.ffprobe import FFprobeAdapter
from hevcwatch.infrastructure.ffmpeg import FFmpegAdapter
from hevcwatch.infrastructure.housekeeping import HousekeepingService
from hevcwatch.pipeline.outcome import OutcomeHandler
from hevcwatch.pipeline.worker import ConversionWorker
from hevcwatch.pipeline.orchestrator import Orchestrator
from hevcwatch.ui.console import ConsoleReporter

REQUIRED_TOOLS = ["ffmpeg", "ffprobe"]

app = typer.Typer(help="hevcwatch - watch a folder and convert media to HEVC with Intel QuickSync")

@app.command()
def watch():
    """Convert everything under INPUT_DIR into OUTPUT_DIR, forever.

    All settings come from environment variables (DELETE_SOURCE, MAX_JOBS,
    INPUT_DIR, OUTPUT_DIR, LOOP_WAIT_SECONDS, ...).
    """
    try:
        config = load_config_from_env()
    except ValidationError as exc:
        typer.secho(f"ERROR: invalid configuration:\n{exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    bus = EventBus()
    reporter = ConsoleReporter(bus)
    reporter.show_config(config)

    try:
        logger = setup_logging(config.resolved_log_path, debug=config.debug)
        logger.info(
            f"hevcwatch started: input={config.input_dir}, output={config.output_dir}, "
            f"max_jobs={config.max_jobs}, delete_source={config.delete_source}, "
            f"loop_wait={config.loop_wait_seconds}s"
        )

        housekeeper = HousekeepingService()
        outcome = OutcomeHandler(config, bus, housekeeper)

        missing = housekeeper.missing_tools(REQUIRED_TOOLS)
        if missing:
            error = DependencyMissingError(missing)
            outcome.append_global(f"{datetime.now().strftime('%Y-%m-%d %H:%M:%S')} ERROR: {error}")
            logger.error(str(error))
            reporter.error(str(error))
            raise typer.Exit(code=1)

        housekeeper.cleanup_stale_diagnostics()

        # Components
        scanner = FileScanner(config.input_dir, config.output_dir)
        ffprobe = FFprobeAdapter()
        ffmpeg = FFmpegAdapter(event_bus=bus, qsv_device=config.qsv_device, debug=config.debug)
        worker = ConversionWorker(
            event_bus=bus,
            ffprobe_adapter=ffprobe,
            ffmpeg_adapter=ffmpeg,
            outcome_handler=outcome,
        )
        orchestrator = Orchestrator(
            config=config,
            event_bus=bus,
            file_scanner=scanner,
            worker=worker,
        )

        reporter.console.print(f"--- Watching {config.input_dir} ---", markup=False, highlight=False)
        orchestrator.run()

    except KeyboardInterrupt:
        typer.secho("\nStopped by user (Ctrl+C)", fg=typer.colors.YELLOW)
        raise typer.Exit(code=130)

    except typer.Exit:
        raise

    except Exception as e:
        typer.secho(f"Fatal Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

if __name__ == "__main__":
    app()
