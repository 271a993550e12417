import argparse
import logging
import os
import sys
import threading
import traceback
import warnings
from datetime import datetime

from PySide6.QtGui import QImageReader
from PySide6.QtWidgets import QApplication, QFileDialog, QMessageBox

from tilegrid.utils.settings import settings

CRASH_LOG_PATH = os.path.abspath('tilegrid_crash.log')


def _append_crash_log(title: str, exc_info=None):
    """Append a timestamped crash entry to the crash log."""
    ts = datetime.now().strftime('%Y-%m-%d %H:%M:%S')
    try:
        with open(CRASH_LOG_PATH, 'a', encoding='utf-8') as f:
            f.write("\n" + "=" * 80 + "\n")
            f.write(f"{ts} | {title}\n")
            f.write("=" * 80 + "\n")
            if exc_info is None:
                f.write(traceback.format_exc())
            else:
                f.writelines(traceback.format_exception(*exc_info))
            f.write("\n")
    except OSError as log_error:
        print(f"[CRASH] Failed to write crash log: {log_error}")
    print(f"[CRASH] Details written to: {CRASH_LOG_PATH}")


def install_crash_handlers():
    """Log unhandled Python and thread exceptions to the crash log."""
    def _unhandled_exception(exc_type, exc_value, exc_traceback):
        _append_crash_log("UNHANDLED EXCEPTION", (exc_type, exc_value, exc_traceback))
        sys.__excepthook__(exc_type, exc_value, exc_traceback)

    def _thread_exception(args):
        thread_name = getattr(args.thread, 'name', 'unknown')
        _append_crash_log(
            f"THREAD EXCEPTION ({thread_name})",
            (args.exc_type, args.exc_value, args.exc_traceback),
        )

    sys.excepthook = _unhandled_exception
    threading.excepthook = _thread_exception


def suppress_warnings():
    """Suppress all warnings when not in a development environment."""
    environment = os.getenv('TILEGRID_ENVIRONMENT')
    if environment == 'development':
        print('Running in development environment.')
        return
    logging.getLogger('urllib3').setLevel(logging.ERROR)
    logging.basicConfig(level=logging.ERROR)
    warnings.simplefilter('ignore')


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog='tilegrid',
        description='Browse numbered images (1.png, 2.png, ...) in a masonry grid.')
    parser.add_argument('source', nargs='?', default=None,
                        help='Image directory or http(s):// base URL serving /images/<n>.png')
    return parser.parse_args(argv)


def resolve_source(cli_source: str | None) -> str | None:
    """Command line first, then the saved setting, then ask."""
    if cli_source:
        settings.setValue('image_source', cli_source)
        return cli_source
    saved = settings.value('image_source', '', type=str)
    if saved:
        return saved
    chosen = QFileDialog.getExistingDirectory(None, 'Choose image directory')
    if chosen:
        settings.setValue('image_source', chosen)
        return chosen
    return None


def run_gui(argv=None) -> int:
    args = parse_args(argv)

    app = QApplication([])
    app.setApplicationName('tilegrid')
    app.setApplicationDisplayName('tilegrid')
    app.setStyle('Fusion')
    # Disable the allocation limit to allow loading large images.
    QImageReader.setAllocationLimit(0)

    source = resolve_source(args.source)
    if not source:
        print('[STARTUP] No image source selected, exiting')
        return 1

    # Imported late so the QApplication exists before any widget module loads.
    from tilegrid.widgets.main_window import MainWindow
    main_window = MainWindow(app, source)
    main_window.start()
    return int(app.exec())


def main():
    suppress_warnings()
    install_crash_handlers()
    try:
        sys.exit(run_gui())
    except Exception as exception:
        _append_crash_log("TOP-LEVEL EXCEPTION", sys.exc_info())
        if QApplication.instance() is None:
            raise
        error_message_box = QMessageBox()
        error_message_box.setWindowTitle('Error')
        error_message_box.setIcon(QMessageBox.Icon.Critical)
        error_message_box.setText(str(exception))
        error_message_box.setDetailedText(traceback.format_exc())
        error_message_box.exec()
        sys.exit(1)


if __name__ == '__main__':
    main()
