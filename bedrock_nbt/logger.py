import os
import time
import threading
from datetime import datetime

class Logger:
    def __init__(self, thread_name="nbt", output_levels=("WARN", "ERROR"), log_to_file=False, logs_folder="logs", parent_logger=None):
        self.thread_name = thread_name
        self.output_levels = set(level.upper() for level in output_levels)
        self.log_to_file = log_to_file
        self.logs_folder = logs_folder
        self.parent_logger = parent_logger  # Root logger owns the file
        self.log_file = None
        self._lock = threading.Lock()

        if self.parent_logger is None and self.log_to_file:
            self._setup_logs_folder()

    def _setup_logs_folder(self):
        if not os.path.exists(self.logs_folder):
            os.makedirs(self.logs_folder)

        latest_log = os.path.join(self.logs_folder, "latest.log")

        if os.path.exists(latest_log):
            date_str = datetime.now().strftime("%Y-%m-%d")
            idx = 1
            while True:
                rotated_log = os.path.join(self.logs_folder, f"crawl-{date_str}-{idx}.log")
                if not os.path.exists(rotated_log):
                    os.rename(latest_log, rotated_log)
                    break
                idx += 1

        self.log_file = latest_log
        open(self.log_file, 'w', encoding='utf-8').close()

    def _current_time(self):
        return time.strftime("%H:%M:%S")

    def _format_message(self, level, *args):
        timestamp = self._current_time()
        return f"[{timestamp}] [{self.thread_name}/{level.upper()}]: " + ' '.join(str(arg) for arg in args)

    def _write(self, message):
        if self.parent_logger:
            self.parent_logger._write(message)
            return
        if self.log_to_file and self.log_file:
            # Decoders log from worker threads
            with self._lock:
                with open(self.log_file, 'a', encoding='utf-8') as f:
                    f.write(message + '\n')

    def enable_file(self, logs_folder=None):
        """Starts writing every message of this logger tree to `<logs_folder>/latest.log`."""
        root = self.parent_logger or self
        if logs_folder is not None:
            root.logs_folder = logs_folder
        root.log_to_file = True
        root._setup_logs_folder()

    def log(self, level, *args):
        level = level.upper()
        message = self._format_message(level, *args)

        if level in self.output_levels or "ALL" in self.output_levels:
            print(message)

        self._write(message)

    def info(self, *args):
        self.log("INFO", *args)

    def warn(self, *args):
        self.log("WARN", *args)

    def error(self, *args):
        self.log("ERROR", *args)

    def debug(self, *args):
        self.log("DEBUG", *args)

    def set_levels(self, *levels):
        # In place, so sub-loggers created without their own levels follow along
        self.output_levels.clear()
        self.output_levels.update(level.upper() for level in levels)

    def create_sub_logger(self, thread_name, output_levels=None):
        sub_logger = Logger(
            thread_name=thread_name,
            output_levels=output_levels or (),
            log_to_file=self.log_to_file,
            logs_folder=self.logs_folder,
            parent_logger=self if self.parent_logger is None else self.parent_logger
        )
        if output_levels is None:
            sub_logger.output_levels = self.output_levels
        return sub_logger

logger = Logger(thread_name="main", output_levels=("WARN", "ERROR"), log_to_file=False)
