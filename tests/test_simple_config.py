import json
import os
import tempfile
import shutil

from ledgerlib.simple_config import SimpleConfig, read_user_config

from . import LedgerTestCase


class Test_SimpleConfig(LedgerTestCase):

    def setUp(self):
        super(Test_SimpleConfig, self).setUp()
        # make sure "read_user_config" and "user_dir" return a temporary directory.
        self.ledgerlib_dir = tempfile.mkdtemp()
        # Do the same for the user dir to avoid overwriting the real configuration
        self.user_dir = tempfile.mkdtemp()

        self.options = {"ledgerlib_path": self.ledgerlib_dir}

    def tearDown(self):
        super(Test_SimpleConfig, self).tearDown()
        shutil.rmtree(self.ledgerlib_dir)
        shutil.rmtree(self.user_dir)

    def test_simple_config_command_line_overrides_everything(self):
        """Options passed by command line override all other configuration
        sources"""
        fake_read_user = lambda _: {"ledgerlib_path": "b"}
        read_user_dir = lambda : self.user_dir
        config = SimpleConfig(options=self.options,
                              read_user_config_function=fake_read_user,
                              read_user_dir_function=read_user_dir)
        self.assertEqual(self.options.get("ledgerlib_path"),
                         config.get("ledgerlib_path"))

    def test_simple_config_user_dir_is_used_if_no_path_given(self):
        read_user_dir = lambda : self.user_dir
        config = SimpleConfig(options={},
                              read_user_config_function=lambda _: {},
                              read_user_dir_function=read_user_dir)
        self.assertEqual(self.user_dir, config.path)

    def test_cannot_set_options_passed_by_command_line(self):
        fake_read_user = lambda _: {"ledgerlib_path": "b"}
        read_user_dir = lambda : self.user_dir
        config = SimpleConfig(options=self.options,
                              read_user_config_function=fake_read_user,
                              read_user_dir_function=read_user_dir)
        config.set_key("ledgerlib_path", "c")
        self.assertEqual(self.options.get("ledgerlib_path"),
                         config.get("ledgerlib_path"))

    def test_user_config_is_not_written_with_read_only_config(self):
        """The user config does not contain command-line options when saved."""
        fake_read_user = lambda _: {"something": "a"}
        read_user_dir = lambda : self.user_dir
        self.options.update({"something": "c"})
        config = SimpleConfig(options=self.options,
                              read_user_config_function=fake_read_user,
                              read_user_dir_function=read_user_dir)
        config.save_user_config()
        with open(os.path.join(self.ledgerlib_dir, "config"), "r") as f:
            result = json.loads(f.read())
        self.assertEqual({"something": "a"}, result)

    def test_configvars_set_and_get(self):
        config = SimpleConfig(self.options)
        self.assertEqual("verbosity", SimpleConfig.LOG_VERBOSITY.key())
        self.assertIsNone(config.LOG_VERBOSITY)
        config.LOG_VERBOSITY = "debug,apdu=error"
        self.assertEqual("debug,apdu=error", config.get("verbosity"))
        self.assertEqual("debug,apdu=error", config.LOG_VERBOSITY)
        # persisted
        self.assertEqual({"verbosity": "debug,apdu=error"}, read_user_config(self.ledgerlib_dir))
        config.LOG_VERBOSITY = None
        self.assertIsNone(config.get("verbosity"))

    def test_configvars_get_default_value(self):
        config = SimpleConfig(self.options)
        self.assertFalse(SimpleConfig.LEDGER_DEBUG_APDU.get_default_value())
        self.assertFalse(config.LEDGER_DEBUG_APDU)
        self.assertFalse(config.is_set(SimpleConfig.LEDGER_DEBUG_APDU))
        config.LEDGER_DEBUG_APDU = True
        self.assertTrue(config.LEDGER_DEBUG_APDU)
        self.assertTrue(config.is_set(SimpleConfig.LEDGER_DEBUG_APDU))

    def test_configvars_setter_type_check(self):
        config = SimpleConfig(self.options)
        with self.assertRaises(ValueError):
            config.LOG_TO_FILE = "yes"
        self.assertFalse(config.LOG_TO_FILE)

    def test_configvars_is_modifiable(self):
        config = SimpleConfig({**self.options, "ledger_debug_apdu": True})
        self.assertFalse(config.is_modifiable(SimpleConfig.LEDGER_DEBUG_APDU))
        config.LEDGER_DEBUG_APDU = False
        self.assertTrue(config.LEDGER_DEBUG_APDU)

        self.assertTrue(config.is_modifiable("log_to_file"))
        config.make_key_not_modifiable(SimpleConfig.LOG_TO_FILE)
        config.LOG_TO_FILE = True
        self.assertFalse(config.LOG_TO_FILE)

    def test_list_config_vars(self):
        config = SimpleConfig(self.options)
        for key in ("verbosity", "verbosity_shortcuts", "log_to_file", "ledger_debug_apdu"):
            self.assertIn(key, config.list_config_vars())


class TestUserConfig(LedgerTestCase):

    def setUp(self):
        super(TestUserConfig, self).setUp()
        self.user_dir = tempfile.mkdtemp()

    def tearDown(self):
        super(TestUserConfig, self).tearDown()
        shutil.rmtree(self.user_dir)

    def test_no_path_means_no_configuration(self):
        """If no path is given, no configuration is read."""
        self.assertEqual({}, read_user_config(None))

    def test_path_without_config_file(self):
        """We pass a path but if does not contain a "config" file."""
        self.assertEqual({}, read_user_config(self.user_dir))

    def test_path_with_reprd_object(self):
        with open(os.path.join(self.user_dir, "config"), "w") as f:
            f.write("{'verbosity': '*'}")
        with self.assertRaises(ValueError):
            read_user_config(self.user_dir)

    def test_path_with_list(self):
        with open(os.path.join(self.user_dir, "config"), "w") as f:
            f.write("[1, 2]")
        with self.assertRaises(ValueError):
            read_user_config(self.user_dir)
