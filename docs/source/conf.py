# Configuration file for the Sphinx documentation builder.
import os
import sys

# Add project root to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../..")))
from phasefieldMD import __version__

# -- Project information -----------------------------------------------------
project = 'phasefieldMD'
release = '.'.join(__version__.split('.')[:2])
version = __version__

# -- General configuration ---------------------------------------------------
extensions = [
    'sphinx.ext.duration',
    'sphinx.ext.doctest',
    'sphinx.ext.autodoc',
    'sphinx.ext.autosummary',
    'sphinx.ext.intersphinx',
    'sphinx.ext.napoleon',
    'myst_nb',
]

intersphinx_mapping = {
    'python': ('https://docs.python.org/3/', None),
    'numpy': ('https://numpy.org/doc/stable/', None),
    'ase': ('https://wiki.fysik.dtu.dk/ase/', None),
}
intersphinx_disabled_domains = ['std']

templates_path = ['_templates']

# -- Options for HTML output -------------------------------------------------
html_theme = 'sphinx_rtd_theme'

# -- Autodoc settings --------------------------------------------------------
autodoc_typehints = 'description'
autosummary_generate = True
autodoc_member_order = 'bysource'
napoleon_numpy_docstring = True
exclude_patterns = ['_build', '**.ipynb_checkpoints', 'Thumbs.db', '.DS_Store']
source_suffix = ['.rst', '.ipynb', '.md']
nb_execution_mode = "off"
