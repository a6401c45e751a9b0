# /*
# * Copyright © 2020-2024 VMware, Inc.
# * SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-only
# */

import logging
import logging.handlers
import os
import sys


class EarlyRecords(logging.handlers.BufferingHandler):
    """
    Holds records logged before the build log file is known, so they can
    be written to it once it is attached.
    """

    def __init__(self, capacity=1000):
        super().__init__(capacity)

    def shouldFlush(self, record):
        # keep the first records, drop the rest
        if len(self.buffer) > self.capacity:
            self.buffer.pop()
        return False

    def replay(self, handler):
        self.acquire()
        try:
            for record in self.buffer:
                if record.levelno >= handler.level:
                    handler.handle(record)
            self.buffer = []
        finally:
            self.release()


class Logger(object):
    NAME = "bt-ec2"
    FORMAT = "%(levelname)s [%(name)s]: %(message)s"
    FILE_FORMAT = "%(asctime)s %(levelname)s [%(name)s]: %(message)s"

    @staticmethod
    def get_logger(log_file=None, log_level="info", console=False):
        logger = logging.getLogger(Logger.NAME)
        Logger.set_level(logger, log_level)

        if console and not any(getattr(h, "_bt_console", False) for h in logger.handlers):
            stream_handler = logging.StreamHandler(sys.stdout)
            stream_handler.setFormatter(logging.Formatter(Logger.FORMAT))
            stream_handler._bt_console = True
            logger.addHandler(stream_handler)

        if log_file:
            Logger.add_log_file(logger, log_file)
        elif not any(isinstance(h, (EarlyRecords, logging.FileHandler)) for h in logger.handlers):
            logger.addHandler(EarlyRecords())

        return logger

    @staticmethod
    def set_level(logger, log_level):
        logger.setLevel(getattr(logging, str(log_level).upper(), logging.INFO))

    @staticmethod
    def add_log_file(logger, log_file):
        """
        Attach a file handler writing to log_file, once per path. Records
        buffered before the first log file was attached are written to it.
        """
        log_file = os.path.abspath(log_file)
        for handler in logger.handlers:
            if isinstance(handler, logging.FileHandler) and handler.baseFilename == log_file:
                return handler

        os.makedirs(os.path.dirname(log_file), exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(Logger.FILE_FORMAT))

        for handler in list(logger.handlers):
            if isinstance(handler, EarlyRecords):
                handler.replay(file_handler)
                logger.removeHandler(handler)
                handler.close()

        logger.addHandler(file_handler)
        return file_handler

    @staticmethod
    def close_log_files(logger):
        for handler in list(logger.handlers):
            if isinstance(handler, (EarlyRecords, logging.FileHandler)):
                handler.close()
                logger.removeHandler(handler)
