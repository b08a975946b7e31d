#!/usr/bin/env python3

# python setup.py sdist --format=zip,gztar

import sys
import importlib.util

from setuptools import setup, find_packages

MIN_PYTHON_VERSION = "3.8.0"
_min_python_version_tuple = tuple(map(int, (MIN_PYTHON_VERSION.split("."))))


if sys.version_info[:3] < _min_python_version_tuple:
    sys.exit("Error: ledgerlib requires Python version >= %s..." % MIN_PYTHON_VERSION)

with open('contrib/requirements/requirements.txt') as f:
    requirements = f.read().splitlines()

# load version.py; needlessly complicated alternative to "imp.load_source":
version_spec = importlib.util.spec_from_file_location('version', 'ledgerlib/version.py')
version_module = version = importlib.util.module_from_spec(version_spec)
version_spec.loader.exec_module(version_module)

extras_require = {
    'tests': ['pytest'],
}


setup(
    name="ledgerlib",
    version=version.LEDGERLIB_VERSION,
    python_requires='>={}'.format(MIN_PYTHON_VERSION),
    install_requires=requirements,
    extras_require=extras_require,
    packages=(['ledgerlib',]
              + [('ledgerlib.'+pkg) for pkg in
                 find_packages('ledgerlib', exclude=["tests"])]),
    package_dir={
        'ledgerlib': 'ledgerlib'
    },
    description="Host-side driver for the Bitcoin application of Ledger-style signing devices",
    license="MIT Licence",
    long_description="""Transaction codec and APDU signing protocol for hardware signing devices""",
)
