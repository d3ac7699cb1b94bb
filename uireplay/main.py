"""Command line entry point for uireplay."""

import argparse
import logging
from typing import Optional

from uireplay.capture import ScreenCapture, load_image, save_image
from uireplay.code_generator import CodeGenerator
from uireplay.comparator import PerceptualComparator
from uireplay.errors import ReferenceImageError
from uireplay.models import RecordingMode, Session, describe_step
from uireplay.recorder import InputListener, Recorder, resolve_key_code
from uireplay.settings import DEFAULT_CONFIG_PATH, SettingsManager
from uireplay.uithread import UiThread
from uireplay.window import WindowLocator

logger = logging.getLogger("uireplay.cli")


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(prog="uireplay", description="Record and replay UI tests")
    parser.add_argument("--settings", default=DEFAULT_CONFIG_PATH, help="Settings JSON file")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    record_parser = subparsers.add_parser("record", help="Record input and screenshots into a pytest script")
    record_parser.add_argument("--mode", choices=[m.value.lower() for m in RecordingMode], help="Coordinate mode")
    record_parser.add_argument("--auto-raise", action="store_true", default=None, help="Raise the recorded window before each step")
    record_parser.add_argument("--output-root", help="Directory that receives recording_<millis> folders")
    record_parser.add_argument("--toggle-key", help="Key that starts/stops recording (default f1)")
    record_parser.add_argument("--screenshot-key", help="Key that takes a screenshot (default f2)")
    record_parser.add_argument("--save-settings", action="store_true", help="Keep these options as the new defaults")

    compare_parser = subparsers.add_parser("compare", help="Compare two images with PSNR")
    compare_parser.add_argument("source")
    compare_parser.add_argument("target")
    compare_parser.add_argument("--threshold", type=float, help="Minimum score in dB")
    compare_parser.add_argument("--delta", help="Write the delta image to this path")
    compare_parser.add_argument("--white-equals", action="store_true", help="Draw equal pixels white in the delta")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s - %(message)s",
    )

    manager = SettingsManager(args.settings)
    manager.load()

    if args.command == "record":
        return _handle_record(args, manager)
    if args.command == "compare":
        return _handle_compare(args, manager)
    parser.print_help()
    return 1


def _handle_record(args, manager: SettingsManager) -> int:
    overrides = {}
    if args.mode:
        overrides["recording_mode"] = args.mode.capitalize()
    if args.auto_raise is not None:
        overrides["auto_raise"] = args.auto_raise
    if args.output_root:
        overrides["output_root"] = args.output_root
    if args.toggle_key:
        overrides["toggle_key"] = args.toggle_key
    if args.screenshot_key:
        overrides["screenshot_key"] = args.screenshot_key

    if args.save_settings:
        manager.update(**overrides)
        logger.info("Saved settings to %s", manager.config_path)
    else:
        for key, value in overrides.items():
            setattr(manager.settings, key, value)
    settings = manager.settings

    dispatcher = UiThread()
    locator = WindowLocator()
    capture = ScreenCapture(locator)
    generator = CodeGenerator(settings)

    def on_stop(session: Session):
        path = generator.write_script(session)
        logger.info("Wrote %s (%d steps)", path, len(session.steps))

    recorder = Recorder(
        settings=settings,
        window_locator=locator.current_window,
        capture=capture.capture,
        on_stop=on_stop,
        on_step=lambda step: logger.info("Recorded: %s", describe_step(step)),
        toggle_code=resolve_key_code(settings.toggle_key),
        screenshot_code=resolve_key_code(settings.screenshot_key),
    )
    session = recorder.new_session()
    listener = InputListener(recorder, session, dispatcher)
    listener.start()
    logger.info(
        "Press %s to start/stop recording, %s for a screenshot, Ctrl+C to quit.",
        settings.toggle_key.upper(), settings.screenshot_key.upper(),
    )
    try:
        dispatcher.run()
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        listener.stop()
        dispatcher.run_pending()
        if session.is_recording:
            recorder.stop(session)
    return 0


def _handle_compare(args, manager: SettingsManager) -> int:
    threshold = manager.settings.compare_threshold if args.threshold is None else args.threshold
    try:
        source = load_image(args.source)
        target = load_image(args.target)
    except ReferenceImageError as exc:
        logger.error("%s", exc)
        return 2

    comparator = PerceptualComparator(threshold=threshold, white_equals=args.white_equals)
    result = comparator.compare(source, target, with_delta=bool(args.delta))
    if not result.dimensions_match:
        print(f"Dimensions differ: {source.size} vs {target.size}")
        return 1
    print(f"PSNR {result.score:.2f} dB ({'match' if result.matched else 'mismatch'}, threshold {threshold:g})")
    if args.delta and result.delta is not None:
        save_image(result.delta, args.delta)
        logger.info("Wrote delta %s", args.delta)
    return 0 if result.matched else 1


if __name__ == "__main__":
    raise SystemExit(main())
