import os
import threading
from typing import Union, Optional, Dict, Sequence, Any, Set, Callable

from copy import deepcopy

from .util import user_dir, make_dir, read_json_file, write_json_file
from .logging import Logger


_config_var_from_key = {}  # type: Dict[str, 'ConfigVar']


class ConfigVar(property):

    def __init__(
        self,
        key: str,
        *,
        default: Union[Any, Callable[['SimpleConfig'], Any]],  # typically a literal, but can also be a callable
        type_=None,
        short_desc: Callable[[], str] = None,
    ):
        self._key = key
        self._default = default
        self._type = type_
        assert short_desc is None or callable(short_desc)
        self._short_desc = short_desc
        property.__init__(self, self._get_config_value, self._set_config_value)
        assert key not in _config_var_from_key, f"duplicate config key str: {key!r}"
        _config_var_from_key[key] = self

    def _get_config_value(self, config: 'SimpleConfig'):
        with config.lock:
            if config.is_set(self._key):
                value = config.get(self._key)
                # type-check
                if self._type is not None:
                    assert value is not None, f"got None for key={self._key!r}"
                    try:
                        value = self._type(value)
                    except Exception as e:
                        raise ValueError(
                            f"ConfigVar.get type-check and auto-conversion failed. "
                            f"key={self._key!r}. type={self._type}. value={value!r}") from e
            else:
                d = self._default
                value = d(config) if callable(d) else d
            return value

    def _set_config_value(self, config: 'SimpleConfig', value, *, save=True):
        if self._type is not None and value is not None:
            if not isinstance(value, self._type):
                raise ValueError(
                    f"ConfigVar.set type-check failed. "
                    f"key={self._key!r}. type={self._type}. value={value!r}")
        config.set_key(self._key, value, save=save)

    def key(self) -> str:
        return self._key

    def get_default_value(self) -> Any:
        return self._default

    def get_short_desc(self) -> Optional[str]:
        desc = self._short_desc
        return desc() if desc else None

    def __repr__(self):
        return f"<ConfigVar key={self._key!r}>"

    def __deepcopy__(self, memo):
        # We can be considered ~stateless. State is stored in the config, which is external.
        return self


class SimpleConfig(Logger):
    """
    The SimpleConfig class is responsible for handling operations involving
    configuration files.

    There are two different sources of possible configuration values:
        1. Command line options.
        2. User configuration (in the user's config directory)
    They are taken in order (1. overrides config options set in 2.)
    """

    def __init__(self, options=None, read_user_config_function=None,
                 read_user_dir_function=None):
        if options is None:
            options = {}
        for config_key in options:
            assert isinstance(config_key, str), f"{config_key=!r} has type={type(config_key)}, expected str"

        Logger.__init__(self)

        # This lock needs to be acquired for updating and reading the config in
        # a thread-safe way.
        self.lock = threading.RLock()

        # The following two functions are there for dependency injection when
        # testing.
        if read_user_config_function is None:
            read_user_config_function = read_user_config
        if read_user_dir_function is None:
            self.user_dir = user_dir
        else:
            self.user_dir = read_user_dir_function

        # The command line options
        self.cmdline_options = deepcopy(options)

        # Set self.path and read the user config
        self.user_config = {}  # for self.get in ledgerlib_path()
        self.path = self.ledgerlib_path()
        self.user_config = read_user_config_function(self.path)

        self._not_modifiable_keys = set()  # type: Set[str]

    def list_config_vars(self) -> Sequence[str]:
        return list(sorted(_config_var_from_key.keys()))

    def ledgerlib_path(self):
        # Read ledgerlib_path from command line
        # Otherwise use the user's default data directory.
        path = self.get('ledgerlib_path') or self.user_dir()
        make_dir(path, allow_symlink=False)
        self.logger.info(f"ledgerlib directory {path}")
        return path

    def set_key(self, key: Union[str, ConfigVar], value, *, save=True) -> None:
        """Set the value for an arbitrary string config key.
        note: try to use explicit predefined ConfigVars instead of this method, whenever possible.
        """
        if isinstance(key, ConfigVar):
            key = key.key()
        assert isinstance(key, str), key
        if not self.is_modifiable(key):
            self.logger.warning(f"not changing config key '{key}' set on the command line")
            return
        with self.lock:
            if value is not None:
                self.user_config[key] = value
            else:
                self.user_config.pop(key, None)
            if save:
                self.save_user_config()

    def get(self, key: str, default=None) -> Any:
        """Get the value for an arbitrary string config key.
        note: try to use explicit predefined ConfigVars instead of this method, whenever possible.
        """
        assert isinstance(key, str), key
        with self.lock:
            out = self.cmdline_options.get(key)
            if out is None:
                out = self.user_config.get(key, default)
        return out

    def is_set(self, key: Union[str, ConfigVar]) -> bool:
        """Returns whether the config key has any explicit value set/defined."""
        if isinstance(key, ConfigVar):
            key = key.key()
        assert isinstance(key, str), key
        return self.get(key, default=...) is not ...

    def is_modifiable(self, key: Union[str, ConfigVar]) -> bool:
        if isinstance(key, ConfigVar):
            key = key.key()
        return (key not in self.cmdline_options
                and key not in self._not_modifiable_keys)

    def make_key_not_modifiable(self, key: Union[str, ConfigVar]) -> None:
        if isinstance(key, ConfigVar):
            key = key.key()
        assert isinstance(key, str), key
        self._not_modifiable_keys.add(key)

    def save_user_config(self):
        if not self.path:
            return
        path = os.path.join(self.path, "config")
        try:
            write_json_file(path, self.user_config)
        except OSError:
            # datadir probably deleted while running...
            if os.path.exists(self.path):  # or maybe not?
                raise

    LOG_VERBOSITY = ConfigVar(
        'verbosity', default=None, type_=str,
        short_desc=lambda: "Log levels, e.g. 'debug,apdu=error' or '*'",
    )
    LOG_VERBOSITY_SHORTCUTS = ConfigVar(
        'verbosity_shortcuts', default=None, type_=str,
        short_desc=lambda: "Whitelist (or '^'-prefixed blacklist) of logging shortcuts",
    )
    LOG_TO_FILE = ConfigVar('log_to_file', default=False, type_=bool)
    LEDGER_DEBUG_APDU = ConfigVar(
        'ledger_debug_apdu', default=False, type_=bool,
        short_desc=lambda: "Log every APDU exchanged with the device",
    )


def read_user_config(path: Optional[str]) -> Dict[str, Any]:
    """Parse and store the user config settings in ledgerlib.conf into user_config[]."""
    if not path:
        return {}
    config_path = os.path.join(path, "config")
    if not os.path.exists(config_path):
        return {}
    try:
        result = read_json_file(config_path)
        assert isinstance(result, dict), "config file is not a dict"
    except Exception as e:
        raise ValueError(f"Invalid config file at {config_path}: {str(e)}")
    return result
