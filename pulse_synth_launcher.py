import argparse
import logging
import time

from orchestrator import PulseOrchestrator
from pulse_config import PipelineConfig
from pulse_synth import SynthEngine

logger = logging.getLogger("pulse_synth")


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Camera PPG heart rate to generative audio")
    parser.add_argument("--camera", type=int, default=0, help="OpenCV camera index")
    parser.add_argument("--synthetic-bpm", type=float, default=None,
                        help="use a synthetic pulse at this rate instead of the camera")
    parser.add_argument("--no-emitter", action="store_true",
                        help="report the light as off (camera has no torch in front of the finger)")
    parser.add_argument("--no-audio", action="store_true", help="do not open an audio output")
    parser.add_argument("--no-plot", action="store_true", help="run without the live plot window")
    parser.add_argument("--duration", type=float, default=None, help="stop after this many seconds")
    parser.add_argument("--cadence", type=int, default=PipelineConfig.estimation_cadence,
                        help="samples between estimation cycles")
    parser.add_argument("--reset-after", type=int, default=PipelineConfig.reset_after_lost_samples,
                        help="consecutive no-contact samples before the buffer is cleared")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


class _NullStream:
    def start(self):
        pass

    def stop(self):
        pass

    def close(self):
        pass


def main(argv=None) -> int:
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
    )

    config = PipelineConfig(estimation_cadence=args.cadence, reset_after_lost_samples=args.reset_after)
    engine = SynthEngine(stream_factory=(lambda **kw: _NullStream()) if args.no_audio else None)

    feed = None
    if not args.no_plot:
        import plotter
        feed = plotter.PlotFeed()
        plotter.init_plot()

    def log_status(status):
        logger.info("%s | %s | %s", status.heart_rate, status.mood, status.contact)
        if feed is not None:
            feed.set_status(status)

    orchestrator = PulseOrchestrator(
        engine,
        config=config,
        point_sink=feed.add_point if feed is not None else None,
        status_sink=log_status,
    )

    if args.synthetic_bpm is not None:
        from ppg_capture import SyntheticPPGSource
        source = SyntheticPPGSource(orchestrator.on_sample, orchestrator.on_emitter_changed,
                                    bpm=args.synthetic_bpm, noise=1.0)
    else:
        from ppg_capture import CameraPPGSource
        source = CameraPPGSource(orchestrator.on_sample, orchestrator.on_emitter_changed,
                                 camera_index=args.camera, assume_emitter=not args.no_emitter)

    orchestrator.start()
    if not source.start():
        logger.error("no capture source available: %s", getattr(source, "last_error", "unknown"))
        orchestrator.stop()
        return 1

    t0 = time.monotonic()
    try:
        while args.duration is None or time.monotonic() - t0 < args.duration:
            if feed is not None:
                plotter.update_plot(feed)
                time.sleep(0.03)
            else:
                time.sleep(0.2)
    except KeyboardInterrupt:
        logger.info("interrupted")
    finally:
        orchestrator.silence()
        source.stop()
        orchestrator.stop()
        if feed is not None:
            plotter.close_plot()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
