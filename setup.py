#! /usr/bin/env python
"""
setup.py for phasefieldMD
"""

# System imports
import io
from os import path
from setuptools import setup, find_packages

PACKAGES = find_packages(exclude=['tests*'])

THIS_DIRECTORY = path.abspath(path.dirname(__file__))

# versioning

VERSION_NS = {}
with io.open(path.join(THIS_DIRECTORY, 'phasefieldMD', 'version.py')) as f:
    exec(f.read(), VERSION_NS)

ISRELEASED = False
VERSION = VERSION_NS['__version__']

with io.open(path.join(THIS_DIRECTORY, 'README.md')) as f:
    LONG_DESCRIPTION = f.read()

INFO = {
        'name': 'phasefieldMD',
        'description': 'Kernel-smoothed phase fields and densities from '
                       'per-particle order parameters in molecular dynamics.',
        'packages': PACKAGES,
        'include_package_data': True,
        'python_requires': '>=3.10',
        'install_requires': ['numpy', 'numba', 'ase', 'pymatgen',
                             'scipy>=1.9.3', 'tqdm', 'MDAnalysis>=2.4.2'],
        'extras_require': {'test': ['pytest']},
        'version': VERSION,
        'license': 'MIT',
        'long_description': LONG_DESCRIPTION,
        'long_description_content_type': 'text/markdown',
        'classifiers': ['Development Status :: 4 - Beta',
                        'Intended Audience :: Science/Research',
                        'License :: OSI Approved :: MIT License',
                        'Natural Language :: English',
                        'Operating System :: OS Independent',
                        'Programming Language :: Python :: 3.10',
                        'Topic :: Scientific/Engineering',
                        'Topic :: Scientific/Engineering :: Chemistry',
                        'Topic :: Scientific/Engineering :: Physics']
        }

####################################################################
# this is where setup starts
####################################################################


def setup_package():
    """
    Runs package setup
    """
    setup(**INFO)


if __name__ == '__main__':
    setup_package()
