import unittest
import tempfile
import shutil

import ledgerlib
import ledgerlib.logging
from ledgerlib.logging import Logger


ledgerlib.logging._configure_stderr_logging(verbosity="*")


class LedgerTestCase(unittest.TestCase, Logger):
    """Base class for our unit tests."""

    # maxDiff = None  # for debugging

    def __init__(self, *args, **kwargs):
        Logger.__init__(self)
        unittest.TestCase.__init__(self, *args, **kwargs)

    def setUp(self):
        super().setUp()
        self.ledgerlib_path = tempfile.mkdtemp(prefix="ledgerlib-unittest-base-")

    def tearDown(self):
        shutil.rmtree(self.ledgerlib_path)
        super().tearDown()
